# storefront/services/pricing.py
"""
Money/discount calculator.

Pure functions over line items, the applied coupon and the destination
country. All arithmetic stays in unrounded ``Decimal``; rounding to cents
happens only in ``Totals.as_api()``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ..model import Coupon, DiscountType
from ..utils.errors import ValidationError
from ..utils.money import D, ZERO, parse_money, to_float_money

log = logging.getLogger(__name__)

HUNDRED = Decimal("100")
VAT_RATE = Decimal("0.21")
SHIPPING_RATES = {
    "NL": Decimal("0.00"),
    "BE": Decimal("4.95"),
    "DE": Decimal("6.95"),
    "FR": Decimal("8.95"),
}


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    vat: Decimal
    total: Decimal

    def as_api(self):
        return {
            "subtotal": to_float_money(self.subtotal),
            "discount": to_float_money(self.discount),
            "shipping": to_float_money(self.shipping),
            "vat": to_float_money(self.vat),
            "total": to_float_money(self.total),
        }


# ---- VAT policies ------------------------------------------------------------

class ExclusiveVat:
    """VAT added on top of the taxable amount."""
    name = "exclusive"

    def __init__(self, rate=VAT_RATE):
        self.rate = parse_money(rate, "vat rate")

    def apply(self, taxable: Decimal) -> tuple[Decimal, Decimal]:
        vat = taxable * self.rate
        return vat, taxable + vat


class InclusiveVat:
    """Prices already contain VAT; extract it from the gross amount."""
    name = "inclusive"

    def __init__(self, rate=VAT_RATE):
        self.rate = parse_money(rate, "vat rate")

    def apply(self, gross: Decimal) -> tuple[Decimal, Decimal]:
        vat = gross * self.rate / (1 + self.rate)
        return vat, gross


VAT_POLICIES = {p.name: p for p in (ExclusiveVat, InclusiveVat)}


def vat_policy(name: str, rate=VAT_RATE):
    try:
        return VAT_POLICIES[(name or "").strip().lower()](rate)
    except KeyError:
        raise ValueError(f"unknown VAT policy {name!r}; expected one of {sorted(VAT_POLICIES)}")


# ---- building blocks ---------------------------------------------------------

def _quantity(q) -> int:
    if isinstance(q, bool) or not isinstance(q, int):
        raise ValidationError("quantity must be an integer")
    if q < 0:
        raise ValidationError("quantity must be >= 0")
    return q


def subtotal(line_items) -> Decimal:
    total = ZERO
    for item in line_items:
        price = parse_money(item.unit_price, "price")
        total += price * _quantity(item.quantity)
    return total


def discount_amount(base: Decimal, coupon: Coupon | None) -> Decimal:
    if coupon is None or base <= 0:
        return ZERO
    amount = parse_money(coupon.amount, "coupon amount")
    if coupon.discount_type is DiscountType.PERCENT:
        pct = min(amount, HUNDRED)
        return min(base * pct / HUNDRED, base)
    # fixed_product is applied like fixed_cart; the backend re-prices per product
    return min(amount, base)


def shipping_cost(country: str | None, rates: dict | None = None, fallback=ZERO) -> Decimal:
    rates = SHIPPING_RATES if rates is None else rates
    code = (country or "").strip().upper()
    if code in rates:
        return D(rates[code])
    log.warning("no shipping rate for country %r, charging fallback %s", code, fallback)
    return D(fallback)


def compute_totals(line_items, coupon: Coupon | None = None, country: str | None = "NL", *,
                   vat=None, shipping_rates: dict | None = None, shipping_fallback=ZERO) -> Totals:
    vat = vat or ExclusiveVat()
    sub = subtotal(line_items)
    disc = discount_amount(sub, coupon)
    ship = shipping_cost(country, shipping_rates, shipping_fallback) if line_items else ZERO
    vat_amount, total = vat.apply(sub - disc + ship)
    if total < 0:
        total = ZERO
    return Totals(subtotal=sub, discount=disc, shipping=ship, vat=vat_amount, total=total)


@dataclass(frozen=True)
class PricingRules:
    """Per-deployment pricing configuration."""

    vat: object = field(default_factory=ExclusiveVat)
    shipping_rates: dict = field(default_factory=lambda: dict(SHIPPING_RATES))
    shipping_fallback: Decimal = ZERO

    @classmethod
    def from_config(cls, config) -> "PricingRules":
        rates = {k: parse_money(v, f"shipping rate {k}") for k, v in config["SHIPPING_RATES"].items()}
        return cls(
            vat=vat_policy(config["VAT_POLICY"], config["VAT_RATE"]),
            shipping_rates=rates,
            shipping_fallback=parse_money(config["SHIPPING_FALLBACK_RATE"], "shipping fallback"),
        )

    def totals(self, line_items, coupon=None, country=None) -> Totals:
        return compute_totals(
            line_items, coupon, country,
            vat=self.vat,
            shipping_rates=self.shipping_rates,
            shipping_fallback=self.shipping_fallback,
        )
