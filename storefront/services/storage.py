# storefront/services/storage.py
"""
Persistence port for per-session client state.

The cart lives in the durable scope and the order handoff in the transient
scope, which expires. ``DbStore`` keeps one row per (session, scope, key) and
``MemoryStore`` backs unit tests.
"""
from __future__ import annotations
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from ..extensions import db
from ..model import StorageEntry

log = logging.getLogger(__name__)

DURABLE = "durable"
TRANSIENT = "transient"


def _utcnow() -> datetime:
    # naive UTC, as stored by the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, data: dict | None = None):
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class DbStore:
    def __init__(self, session_id: str, scope: str = DURABLE, ttl: timedelta | None = None):
        self.session_id = session_id
        self.scope = scope
        self.ttl = ttl

    def _row(self, key):
        return StorageEntry.query.filter_by(
            session_id=self.session_id, scope=self.scope, key=key
        ).first()

    def get(self, key):
        row = self._row(key)
        if row is None:
            return None
        if row.expires_at and row.expires_at <= _utcnow():
            db.session.delete(row)
            db.session.commit()
            return None
        return row.value

    def set(self, key, value):
        row = self._row(key)
        if row is None:
            row = StorageEntry(session_id=self.session_id, scope=self.scope, key=key)
            db.session.add(row)
        row.value = value
        row.expires_at = _utcnow() + self.ttl if self.ttl else None
        db.session.commit()

    def delete(self, key):
        row = self._row(key)
        if row is not None:
            db.session.delete(row)
            db.session.commit()


def purge_expired() -> int:
    n = (StorageEntry.query
         .filter(StorageEntry.expires_at.isnot(None))
         .filter(StorageEntry.expires_at <= _utcnow())
         .delete(synchronize_session=False))
    db.session.commit()
    return n


def load_json(store: KeyValueStore, key: str, default=None):
    """Read a JSON value; anything unparseable counts as absent."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        log.warning("discarding malformed stored value for %r", key)
        return default


def save_json(store: KeyValueStore, key: str, value) -> None:
    store.set(key, json.dumps(value, separators=(",", ":")))
