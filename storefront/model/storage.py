# storefront/model/storage.py
from sqlalchemy.sql import func
from ..extensions import db

class StorageEntry(db.Model):
    """One persisted key of a shopper session (durable or transient scope)."""
    __tablename__ = "storage_entry"
    __table_args__ = (db.UniqueConstraint("session_id", "scope", "key", name="uq_storage_entry_key"),)

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(36), nullable=False, index=True)
    scope = db.Column(db.String(16), nullable=False, default="durable")   # "durable" | "transient"
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Text, nullable=False, default="")
    expires_at = db.Column(db.DateTime, nullable=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_dict(self):
        return {
            "session_id": self.session_id,
            "scope": self.scope,
            "key": self.key,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
