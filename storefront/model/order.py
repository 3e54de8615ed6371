from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from ..utils.errors import ValidationError
from ..utils.money import D, to_float_money, to_string_money

REQUIRED_CUSTOMER_FIELDS = (
    "first_name", "last_name", "email", "phone",
    "address_1", "city", "postcode", "country",
)
OPTIONAL_CUSTOMER_FIELDS = ("address_2",)


@dataclass(frozen=True)
class Customer:
    first_name: str
    last_name: str
    email: str
    phone: str
    address_1: str
    city: str
    postcode: str
    country: str
    address_2: str = ""

    @classmethod
    def from_payload(cls, data: dict | None) -> "Customer":
        """Presence check only; formats are left to the form inputs."""
        data = data if isinstance(data, dict) else {}
        values = {
            k: str(data.get(k) or "").strip()
            for k in REQUIRED_CUSTOMER_FIELDS + OPTIONAL_CUSTOMER_FIELDS
        }
        missing = [k for k in REQUIRED_CUSTOMER_FIELDS if not values[k]]
        if missing:
            raise ValidationError(
                "Vul alle verplichte velden in",
                data={"missing": missing},
            )
        values["country"] = values["country"].upper()
        return cls(**values)

    def billing(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address_1": self.address_1,
            "address_2": self.address_2,
            "city": self.city,
            "postcode": self.postcode,
            "country": self.country,
            "email": self.email,
            "phone": self.phone,
        }

    def shipping(self) -> dict:
        b = self.billing()
        b.pop("email")
        b.pop("phone")
        return b


@dataclass(frozen=True)
class PendingOrderReference:
    order_id: int
    order_key: str

    @classmethod
    def from_dict(cls, d: dict) -> "PendingOrderReference":
        order_id = int(d["order_id"])
        order_key = str(d["order_key"] or "")
        if order_id <= 0 or not order_key:
            raise ValueError("incomplete order reference")
        return cls(order_id=order_id, order_key=order_key)

    def as_dict(self) -> dict:
        return {"order_id": self.order_id, "order_key": self.order_key}


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable copy of what the shopper agreed to when the order was placed."""

    order_id: int
    line_items: tuple
    customer: Customer
    shipping_method: str
    shipping_total: Decimal
    subtotal: Decimal
    discount: Decimal
    vat: Decimal
    total: Decimal
    backend_total: Decimal
    currency: str = "EUR"
    coupon: dict | None = None
    fingerprint: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "OrderSnapshot":
        return cls(
            order_id=int(d["order_id"]),
            line_items=tuple(d["line_items"]),
            customer=Customer.from_payload(d["customer"]),
            shipping_method=d["shipping_method"],
            shipping_total=D(d["shipping_total"]),
            subtotal=D(d["subtotal"]),
            discount=D(d["discount"]),
            vat=D(d["vat"]),
            total=D(d["total"]),
            backend_total=D(d["backend_total"]),
            currency=d.get("currency") or "EUR",
            coupon=d.get("coupon"),
            fingerprint=d.get("fingerprint") or "",
        )

    def as_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "line_items": list(self.line_items),
            "customer": self.customer.billing(),
            "shipping_method": self.shipping_method,
            "shipping_total": to_string_money(self.shipping_total),
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "vat": str(self.vat),
            "total": str(self.total),
            "backend_total": str(self.backend_total),
            "currency": self.currency,
            "coupon": self.coupon,
            "fingerprint": self.fingerprint,
        }

    def as_api(self) -> dict:
        return {
            "id": self.order_id,
            "items": list(self.line_items),
            "customer": self.customer.billing(),
            "shipping_method": self.shipping_method,
            "shipping_total": to_float_money(self.shipping_total),
            "coupon": self.coupon,
            "currency": self.currency,
            "totals": {
                "subtotal": to_float_money(self.subtotal),
                "discount": to_float_money(self.discount),
                "shipping": to_float_money(self.shipping_total),
                "vat": to_float_money(self.vat),
                "total": to_float_money(self.total),
                "backend_total": to_float_money(self.backend_total),
            },
        }


@dataclass(frozen=True)
class ConfirmedOrder:
    id: int
    status: str
    order_key: str
    total: str
    currency: str
    payment_method: str
    payment_method_title: str
    payment_url: str | None = None

    @classmethod
    def from_backend(cls, o: dict, *, payment_url: str | None = None) -> "ConfirmedOrder":
        return cls(
            id=int(o["id"]),
            status=o.get("status") or "",
            order_key=o.get("order_key") or "",
            total=str(o.get("total") or "0"),
            currency=o.get("currency") or "EUR",
            payment_method=o.get("payment_method") or "",
            payment_method_title=o.get("payment_method_title") or "",
            payment_url=payment_url,
        )

    def as_api(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "order_key": self.order_key,
            "total": self.total,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_method_title": self.payment_method_title,
            "payment_url": self.payment_url,
        }
