# tests/test_cart_store.py
import json
from decimal import Decimal

import pytest

from storefront.model import Coupon, DiscountType, ProductRef
from storefront.services.cart_store import CART_KEY, CART_OPENED, COUPON_KEY, CartStore
from storefront.services.storage import MemoryStore
from storefront.utils.errors import ValidationError

RADIO = ProductRef(1, "Noodradio", Decimal("20.00"), "https://img.test/1.jpg")
LAMP = ProductRef(2, "Zaklamp", Decimal("15.00"))
SAVE10 = Coupon(id=11, code="save10", discount_type=DiscountType.PERCENT, amount=Decimal("10"))


def snapshot(cart):
    return cart.items, cart.coupon


def test_add_then_remove_restores_prior_state():
    cart = CartStore(MemoryStore())
    cart.add_item(LAMP, 2)
    cart.apply_coupon(SAVE10)
    before = snapshot(cart)

    cart.add_item(RADIO, 1)
    cart.remove_item(RADIO.id)
    assert snapshot(cart) == before


def test_add_same_product_accumulates_quantity():
    cart = CartStore(MemoryStore())
    cart.add_item(RADIO, 1)
    cart.add_item(RADIO, 2)
    assert len(cart.items) == 1
    assert cart.find(RADIO.id).quantity == 3
    assert cart.item_count() == 3


@pytest.mark.parametrize("qty", [0, -1, 1.5, True])
def test_add_rejects_bad_quantity(qty):
    cart = CartStore(MemoryStore())
    with pytest.raises(ValidationError):
        cart.add_item(RADIO, qty)
    assert cart.is_empty()


def test_set_quantity_zero_equals_remove():
    a = CartStore(MemoryStore())
    b = CartStore(MemoryStore())
    for cart in (a, b):
        cart.add_item(RADIO, 1)
        cart.add_item(LAMP, 3)
    a.set_quantity(LAMP.id, 0)
    b.remove_item(LAMP.id)
    assert a.items == b.items


def test_set_quantity_of_missing_product_is_noop():
    cart = CartStore(MemoryStore())
    cart.add_item(RADIO, 1)
    assert cart.set_quantity(99, 4) is None
    assert [i.product_id for i in cart.items] == [RADIO.id]


def test_clear_drops_items_and_coupon():
    store = MemoryStore()
    cart = CartStore(store)
    cart.add_item(RADIO, 1)
    cart.apply_coupon(SAVE10)
    cart.clear()
    assert cart.is_empty()
    assert cart.coupon is None
    assert COUPON_KEY not in store.data


def test_state_survives_rehydration():
    store = MemoryStore()
    cart = CartStore(store)
    cart.add_item(RADIO, 1)
    cart.add_item(LAMP, 2)
    cart.apply_coupon(SAVE10)

    again = CartStore(store)
    assert again.items == cart.items
    assert again.coupon == SAVE10
    assert again.totals("NL").total == cart.totals("NL").total


def test_malformed_stored_cart_starts_empty():
    cart = CartStore(MemoryStore({CART_KEY: "{not json"}))
    assert cart.is_empty()


def test_invalid_line_in_stored_cart_starts_empty():
    bad = [{"product": {"id": 1, "name": "x", "price": "1.00"}, "quantity": 0}]
    cart = CartStore(MemoryStore({CART_KEY: json.dumps(bad)}))
    assert cart.is_empty()


def test_duplicate_products_in_stored_cart_start_empty():
    line = {"product": {"id": 1, "name": "x", "price": "1.00"}, "quantity": 1}
    cart = CartStore(MemoryStore({CART_KEY: json.dumps([line, line])}))
    assert cart.is_empty()


def test_broken_stored_coupon_is_dropped():
    line = {"product": {"id": 1, "name": "x", "price": "1.00"}, "quantity": 1}
    cart = CartStore(MemoryStore({
        CART_KEY: json.dumps([line]),
        COUPON_KEY: json.dumps({"id": 1, "code": "x", "discount_type": "bogus", "amount": "1"}),
    }))
    assert cart.item_count() == 1
    assert cart.coupon is None


def test_add_opens_cart_and_notifies():
    seen = []
    cart = CartStore(MemoryStore())
    cart.on(CART_OPENED, lambda c, item: seen.append(item.product_id))
    assert cart.is_open is False
    cart.add_item(RADIO, 1)
    assert cart.is_open is True
    assert seen == [RADIO.id]


def test_totals_apply_coupon():
    cart = CartStore(MemoryStore())
    cart.add_item(RADIO, 1)
    cart.add_item(LAMP, 2)
    cart.apply_coupon(SAVE10)
    t = cart.totals("NL")
    assert t.subtotal == Decimal("50.00")
    assert t.discount == Decimal("5")
    assert t.as_api()["total"] == 54.45
