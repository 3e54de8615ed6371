# storefront/services/cart_store.py
from __future__ import annotations
import logging
from dataclasses import replace

from ..model import Coupon, LineItem, ProductRef
from ..utils.errors import ValidationError
from .pricing import PricingRules, Totals
from .storage import KeyValueStore, load_json, save_json

log = logging.getLogger(__name__)

CART_KEY = "noodklaar-cart"
COUPON_KEY = "noodklaar-coupon"

CART_OPENED = "cart_opened"


class CartStore:
    """
    Ordered line items plus at most one applied coupon for one shopper session.

    Every mutation writes the whole cart through the storage port. State is
    rehydrated on construction; unreadable stored data yields an empty cart.
    """

    def __init__(self, storage: KeyValueStore, pricing: PricingRules | None = None):
        self._storage = storage
        self._pricing = pricing or PricingRules()
        self._items: list[LineItem] = []
        self._coupon: Coupon | None = None
        self._listeners: dict[str, list] = {}
        self.is_open = False
        self._rehydrate()

    # ---- state -----------------------------------------------------------------
    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def coupon(self) -> Coupon | None:
        return self._coupon

    def is_empty(self) -> bool:
        return not self._items

    def item_count(self) -> int:
        return sum(i.quantity for i in self._items)

    def find(self, product_id: int) -> LineItem | None:
        return next((i for i in self._items if i.product_id == product_id), None)

    def totals(self, country: str | None = "NL") -> Totals:
        return self._pricing.totals(self._items, self._coupon, country)

    # ---- events ----------------------------------------------------------------
    def on(self, event: str, callback) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str, **payload) -> None:
        for cb in self._listeners.get(event, ()):
            cb(self, **payload)

    # ---- mutations -------------------------------------------------------------
    def add_item(self, product: ProductRef, quantity: int = 1) -> LineItem:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be >= 1")

        existing = self.find(product.id)
        if existing:
            item = replace(existing, quantity=existing.quantity + quantity)
            self._items[self._items.index(existing)] = item
        else:
            item = LineItem(product=product, quantity=quantity)
            self._items.append(item)

        self._persist()
        self.is_open = True
        self._emit(CART_OPENED, item=item)
        return item

    def remove_item(self, product_id: int) -> None:
        before = len(self._items)
        self._items = [i for i in self._items if i.product_id != product_id]
        if len(self._items) != before:
            self._persist()

    def set_quantity(self, product_id: int, quantity: int) -> LineItem | None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be an integer")
        if quantity <= 0:
            self.remove_item(product_id)
            return None

        existing = self.find(product_id)
        if existing is None:
            return None
        item = replace(existing, quantity=quantity)
        self._items[self._items.index(existing)] = item
        self._persist()
        return item

    def apply_coupon(self, coupon: Coupon) -> None:
        self._coupon = coupon
        self._persist()

    def remove_coupon(self) -> None:
        self._coupon = None
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._coupon = None
        self._persist()

    # ---- persistence -----------------------------------------------------------
    def _persist(self) -> None:
        save_json(self._storage, CART_KEY, [i.as_dict() for i in self._items])
        if self._coupon is None:
            self._storage.delete(COUPON_KEY)
        else:
            save_json(self._storage, COUPON_KEY, self._coupon.as_dict())

    def _rehydrate(self) -> None:
        raw_items = load_json(self._storage, CART_KEY, default=[])
        try:
            if not isinstance(raw_items, list):
                raise TypeError("cart must be a list")
            items = [LineItem.from_dict(d) for d in raw_items]
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            log.warning("failed to parse stored cart, starting empty: %s", e)
            items = []

        ids = [i.product_id for i in items]
        if len(ids) != len(set(ids)):
            log.warning("stored cart has duplicate products, starting empty")
            items = []
        self._items = items

        raw_coupon = load_json(self._storage, COUPON_KEY)
        coupon = None
        if raw_coupon is not None:
            try:
                coupon = Coupon.from_dict(raw_coupon)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                log.warning("failed to parse stored coupon, dropping it: %s", e)
        self._coupon = coupon

    def as_api(self, country: str | None = "NL") -> dict:
        return {
            "items": [i.as_api() for i in self._items],
            "item_count": self.item_count(),
            "coupon": self._coupon.as_api() if self._coupon else None,
            "country": (country or "").upper(),
            "totals": self.totals(country).as_api(),
        }
