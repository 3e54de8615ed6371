# storefront/services/coupon_service.py
from __future__ import annotations
import logging
from datetime import datetime, timezone

from ..model import Coupon
from ..utils.errors import (
    AboveMaximum, BelowMinimum, CouponExpired, CouponNotFound,
    CouponValidationFailed, EmptyCode, RemoteCallError, UsageExceeded, ValidationError,
)
from ..utils.money import parse_money

log = logging.getLogger(__name__)


def _now_utc():
    return datetime.now(timezone.utc)


def select_candidate(candidates: list, code: str) -> dict | None:
    """Exact case-insensitive code match wins, otherwise the first result."""
    if not candidates:
        return None
    wanted = code.lower()
    for c in candidates:
        if isinstance(c, dict) and str(c.get("code") or "").lower() == wanted:
            return c
    log.info("no exact match for coupon %r, using first result", code)
    return candidates[0]


class CouponValidator:
    """Looks a code up on the backend and applies the local business rules."""

    def __init__(self, client, clock=_now_utc):
        self.client = client
        self.clock = clock

    def validate(self, code: str | None, cart_total) -> Coupon:
        code = (code or "").strip()
        if not code:
            raise EmptyCode()
        cart_total = parse_money(cart_total, "cartTotal")

        try:
            candidates = self.client.find_coupons(code)
        except RemoteCallError as e:
            log.error("coupon lookup for %r failed: %s", code, e.detail)
            raise CouponValidationFailed(detail=e.detail) from e

        raw = select_candidate(candidates, code)
        if raw is None:
            raise CouponNotFound()

        try:
            coupon = Coupon.from_backend(raw)
        except (ValidationError, AttributeError) as e:
            log.error("malformed coupon record for %r: %s", code, e)
            raise CouponValidationFailed(detail=str(e)) from e

        self.check_rules(coupon, cart_total)
        log.info("coupon %s accepted for cart total %s", coupon.code, cart_total)
        return coupon

    def check_rules(self, coupon: Coupon, cart_total) -> None:
        # expiry first: an expired coupon is rejected whatever else holds
        if coupon.expires_at and coupon.expires_at < self.clock():
            raise CouponExpired()
        if coupon.minimum_amount is not None and cart_total < coupon.minimum_amount:
            raise BelowMinimum(coupon.minimum_amount)
        if coupon.maximum_amount is not None and cart_total > coupon.maximum_amount:
            raise AboveMaximum(coupon.maximum_amount)
        # usage_limit of None/0 means unlimited
        if coupon.usage_limit and coupon.usage_limit > 0 and coupon.usage_count >= coupon.usage_limit:
            raise UsageExceeded()
