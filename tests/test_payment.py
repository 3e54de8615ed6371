# tests/test_payment.py
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from storefront.model import PendingOrderReference
from storefront.services.payment import (
    BACKEND_METHODS, DEFAULT_METHOD, METHOD_TITLES, PaymentMethod, RedirectPaymentBridge,
    SimulatedPaymentBridge, backend_method, bridge_for_mode, parse_method,
)
from storefront.utils.errors import PaymentError

from conftest import CUSTOMER, FakeBackend

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def placed_order(backend):
    order = backend.create_order({
        "status": "pending",
        "billing": CUSTOMER,
        "shipping": CUSTOMER,
        "line_items": [{"product_id": 1, "quantity": 1}],
    })
    return PendingOrderReference(order["id"], order["order_key"])


def test_every_method_is_mapped():
    for m in PaymentMethod:
        assert BACKEND_METHODS[m]
        assert METHOD_TITLES[m]


@pytest.mark.parametrize("raw, expected", [
    ("ideal", PaymentMethod.IDEAL),
    (" Klarna ", PaymentMethod.KLARNA),
    (PaymentMethod.BANCONTACT, PaymentMethod.BANCONTACT),
    ("paypal", DEFAULT_METHOD),
    (None, DEFAULT_METHOD),
])
def test_parse_method(raw, expected):
    assert parse_method(raw) is expected


def test_backend_method_splits_subtype():
    assert backend_method(PaymentMethod.IDEAL) == ("woocommerce_payments", "ideal")
    assert backend_method(PaymentMethod.CARD) == ("woocommerce_payments", None)


def test_redirect_bridge_builds_order_pay_url():
    backend = FakeBackend()
    ref = placed_order(backend)
    bridge = RedirectPaymentBridge(backend, store_base_url="https://shop.test/")

    confirmed = bridge.request("ideal", ref)

    url = urlsplit(confirmed.payment_url)
    assert url.netloc == "shop.test"
    assert url.path == f"/checkout/order-pay/{ref.order_id}/"
    q = parse_qs(url.query)
    assert q["key"] == [ref.order_key]
    assert q["pay_for_order"] == ["true"]
    assert q["payment_method"] == ["woocommerce_payments"]
    assert q["payment_method_type"] == ["ideal"]
    assert backend.orders[ref.order_id]["payment_method_title"] == "iDEAL"
    # the returned order reflects the update, not the order as it was fetched
    assert confirmed.payment_method == "woocommerce_payments"
    assert confirmed.payment_method_title == "iDEAL"


def test_redirect_bridge_rejects_foreign_key():
    backend = FakeBackend()
    ref = placed_order(backend)
    with pytest.raises(PaymentError):
        RedirectPaymentBridge(backend).request("card", PendingOrderReference(ref.order_id, "wc_order_other"))
    assert backend.updates == []


def test_simulated_bridge_marks_order_paid():
    backend = FakeBackend()
    ref = placed_order(backend)
    bridge = SimulatedPaymentBridge(backend, clock=lambda: FIXED_NOW)

    confirmed = bridge.request(PaymentMethod.KLARNA, ref)

    assert confirmed.status == "processing"
    assert confirmed.payment_url is None
    _, payload = backend.updates[-1]
    assert payload["set_paid"] is True
    assert payload["payment_method"] == "klarna_payments"
    assert payload["transaction_id"] == f"test_{int(FIXED_NOW.timestamp() * 1000)}_{ref.order_id}"


def test_simulated_bridge_rejection_raises_payment_error():
    backend = FakeBackend()
    ref = placed_order(backend)
    backend.decline_payments = True
    with pytest.raises(PaymentError) as exc:
        SimulatedPaymentBridge(backend).request("card", ref)
    assert exc.value.detail == "Kaart geweigerd"
    assert exc.value.status_code == 402


def test_bridge_for_mode():
    backend = FakeBackend()
    assert isinstance(bridge_for_mode("redirect", backend), RedirectPaymentBridge)
    assert isinstance(bridge_for_mode("SIMULATE", backend), SimulatedPaymentBridge)
    with pytest.raises(ValueError):
        bridge_for_mode("stripe", backend)
