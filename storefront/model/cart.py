# storefront/model/cart.py
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from ..utils.errors import ValidationError
from ..utils.money import D, parse_money, to_float_money, to_string_money
from .product import _main_image


@dataclass(frozen=True)
class ProductRef:
    """Product id plus the display snapshot captured when it went into the cart."""

    id: int
    name: str
    price: Decimal
    image: str | None = None

    @classmethod
    def from_backend(cls, p: dict) -> "ProductRef":
        try:
            pid = int(p["id"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("product id is required")
        return cls(
            id=pid,
            name=p.get("name") or "",
            price=parse_money(p.get("price"), "price"),
            image=_main_image(p),
        )

    @classmethod
    def from_dict(cls, d: dict) -> "ProductRef":
        return cls(
            id=int(d["id"]),
            name=d.get("name") or "",
            price=parse_money(d.get("price"), "price"),
            image=d.get("image"),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "image": self.image,
        }


@dataclass(frozen=True)
class LineItem:
    product: ProductRef
    quantity: int

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def unit_price(self) -> Decimal:
        return self.product.price

    def line_total_dec(self) -> Decimal:
        return D(self.product.price) * Decimal(self.quantity)

    @classmethod
    def from_dict(cls, d: dict) -> "LineItem":
        qty = d["quantity"]
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise ValidationError("quantity must be a positive integer")
        return cls(product=ProductRef.from_dict(d["product"]), quantity=qty)

    def as_dict(self) -> dict:
        return {"product": self.product.as_dict(), "quantity": self.quantity}

    def as_api(self) -> dict:
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "price": to_float_money(self.product.price),
            "quantity": self.quantity,
            "line_total": to_float_money(self.line_total_dec()),
            "image_url": self.product.image,
        }

    def order_line(self) -> dict:
        # shape expected by the backend's line_items
        return {"product_id": self.product.id, "quantity": self.quantity}

    def snapshot_line(self) -> dict:
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "price": to_string_money(self.product.price),
            "quantity": self.quantity,
            "image_url": self.product.image,
        }
