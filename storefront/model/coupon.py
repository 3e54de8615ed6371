# --- storefront/model/coupon.py ---
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from ..utils.errors import ValidationError
from ..utils.money import parse_money


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED_CART = "fixed_cart"
    FIXED_PRODUCT = "fixed_product"


def parse_iso8601(s):
    if not s:
        return None
    s = str(s).strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    # backend dates without offset are treated as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _opt_money(v, field):
    if v in (None, ""):
        return None
    value = parse_money(v, field)
    return value if value > 0 else None


def _opt_int(v):
    if v in (None, ""):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid counter: {v!r}")


@dataclass(frozen=True)
class Coupon:
    id: int
    code: str
    discount_type: DiscountType
    amount: Decimal
    description: str = ""
    minimum_amount: Decimal | None = None
    maximum_amount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    expires_at: datetime | None = None

    @classmethod
    def from_backend(cls, c: dict) -> "Coupon":
        """Build from a wc/v3 coupon record. Raises ValidationError on malformed data."""
        try:
            dtype = DiscountType((c.get("discount_type") or "").strip().lower())
        except ValueError:
            raise ValidationError(f"unknown discount type: {c.get('discount_type')!r}")
        expires_raw = c.get("date_expires_gmt") or c.get("date_expires")
        expires_at = parse_iso8601(expires_raw)
        if expires_raw and expires_at is None:
            raise ValidationError(f"invalid expiry date: {expires_raw!r}")
        try:
            cid = int(c["id"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("coupon id is required")
        return cls(
            id=cid,
            code=(c.get("code") or "").strip(),
            discount_type=dtype,
            amount=parse_money(c.get("amount"), "amount"),
            description=c.get("description") or "",
            minimum_amount=_opt_money(c.get("minimum_amount"), "minimum_amount"),
            maximum_amount=_opt_money(c.get("maximum_amount"), "maximum_amount"),
            usage_limit=_opt_int(c.get("usage_limit")),
            usage_count=_opt_int(c.get("usage_count")) or 0,
            expires_at=expires_at,
        )

    # persisted alongside the cart
    @classmethod
    def from_dict(cls, d: dict) -> "Coupon":
        return cls.from_backend({
            "id": d["id"],
            "code": d["code"],
            "discount_type": d["discount_type"],
            "amount": d["amount"],
            "description": d.get("description"),
            "minimum_amount": d.get("minimum_amount"),
            "maximum_amount": d.get("maximum_amount"),
            "usage_limit": d.get("usage_limit"),
            "usage_count": d.get("usage_count"),
            "date_expires": d.get("expires_at"),
        })

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discount_type": self.discount_type.value,
            "amount": str(self.amount),
            "description": self.description,
            "minimum_amount": str(self.minimum_amount) if self.minimum_amount is not None else None,
            "maximum_amount": str(self.maximum_amount) if self.maximum_amount is not None else None,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    def as_api(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "amount": str(self.amount),
            "discount_type": self.discount_type.value,
            "description": self.description,
        }
