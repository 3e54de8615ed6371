# storefront/services/payment.py
"""
Payment bridge: hands a placed order to the backend's payment handling.

Two deployment modes, never mixed within one order:

* ``redirect`` - record the chosen method on the order and return the
  backend's hosted ``order-pay`` URL; the shopper pays there and comes back.
* ``simulate`` - mark the order paid directly with a synthesized transaction
  id. No payment is authorised; for test shops only.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlencode

from ..model import ConfirmedOrder, PendingOrderReference
from ..utils.errors import PaymentError, RemoteCallError

log = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    CARD = "card"
    IDEAL = "ideal"
    KLARNA = "klarna"
    BANCONTACT = "bancontact"


DEFAULT_METHOD = PaymentMethod.CARD

# every PaymentMethod must appear in both tables
BACKEND_METHODS = {
    PaymentMethod.CARD: "woocommerce_payments",
    PaymentMethod.IDEAL: "woocommerce_payments:ideal",
    PaymentMethod.KLARNA: "klarna_payments",
    PaymentMethod.BANCONTACT: "woocommerce_payments:bancontact",
}

METHOD_TITLES = {
    PaymentMethod.CARD: "Card Payment",
    PaymentMethod.IDEAL: "iDEAL",
    PaymentMethod.KLARNA: "Klarna",
    PaymentMethod.BANCONTACT: "Bancontact",
}

PAID_STATUSES = frozenset({"processing", "completed", "on-hold"})
FAILED_STATUSES = frozenset({"failed", "cancelled"})


def parse_method(raw) -> PaymentMethod:
    if isinstance(raw, PaymentMethod):
        return raw
    try:
        return PaymentMethod(str(raw or "").strip().lower())
    except ValueError:
        log.info("unknown payment method %r, falling back to %s", raw, DEFAULT_METHOD.value)
        return DEFAULT_METHOD


def backend_method(method: PaymentMethod) -> tuple[str, str | None]:
    """(gateway id, payment method type) for the backend."""
    gateway, _, subtype = BACKEND_METHODS[method].partition(":")
    return gateway, subtype or None


class PaymentBridge:
    mode = None

    def __init__(self, client, *, store_base_url: str = "", clock=None):
        self.client = client
        self.store_base_url = (store_base_url or "").rstrip("/")
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def request(self, method, reference: PendingOrderReference, payment_details: dict | None = None) -> ConfirmedOrder:
        method = parse_method(method)
        try:
            return self._request(method, reference, payment_details or {})
        except RemoteCallError as e:
            detail = e.backend_message() or e.detail
            log.error("payment for order %s via %s rejected: %s", reference.order_id, method.value, detail)
            raise PaymentError(detail=detail) from e

    def _request(self, method, reference, payment_details) -> ConfirmedOrder:
        raise NotImplementedError


class RedirectPaymentBridge(PaymentBridge):
    mode = "redirect"

    def _request(self, method, reference, payment_details):
        order = self.client.get_order(reference.order_id)
        if not isinstance(order, dict) or order.get("order_key") != reference.order_key:
            raise PaymentError(detail=f"order key mismatch for order {reference.order_id}")

        gateway, subtype = backend_method(method)
        updated = self.client.update_order(reference.order_id, {
            "payment_method": gateway,
            "payment_method_title": METHOD_TITLES[method],
            "meta_data": [{"key": "_payment_method_selected", "value": method.value}],
        })

        query = {"pay_for_order": "true", "key": reference.order_key, "payment_method": gateway}
        if subtype:
            query["payment_method_type"] = subtype
        url = f"{self.store_base_url}/checkout/order-pay/{reference.order_id}/?{urlencode(query)}"
        log.info("payment url generated for order %s (%s)", reference.order_id, method.value)
        try:
            return ConfirmedOrder.from_backend(updated, payment_url=url)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PaymentError(detail=f"unexpected order payload: {e}") from e


class SimulatedPaymentBridge(PaymentBridge):
    mode = "simulate"

    def _request(self, method, reference, payment_details):
        now = self.clock()
        stamp = int(now.timestamp() * 1000)
        gateway, _ = backend_method(method)
        payload = {
            "payment_method": gateway,
            "payment_method_title": METHOD_TITLES[method],
            "set_paid": True,
            "status": "processing",
            "transaction_id": f"test_{stamp}_{reference.order_id}",
            "date_paid": now.isoformat(),
            "date_paid_gmt": now.isoformat(),
            "meta_data": [
                {"key": "_payment_method_id", "value": method.value},
                {"key": "_payment_intent_id",
                 "value": payment_details.get("paymentIntentId") or f"pi_test_{stamp}_{reference.order_id}"},
            ],
        }
        updated = self.client.update_order(reference.order_id, payload)
        try:
            confirmed = ConfirmedOrder.from_backend(updated)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PaymentError(detail=f"unexpected order payload: {e}") from e
        if confirmed.status not in PAID_STATUSES:
            raise PaymentError(detail=f"order {confirmed.id} left in status {confirmed.status!r}")
        return confirmed


BRIDGES = {b.mode: b for b in (RedirectPaymentBridge, SimulatedPaymentBridge)}


def bridge_for_mode(mode: str, client, **kwargs) -> PaymentBridge:
    try:
        cls = BRIDGES[(mode or "").strip().lower()]
    except KeyError:
        raise ValueError(f"unknown PAYMENT_MODE {mode!r}; expected one of {sorted(BRIDGES)}")
    return cls(client, **kwargs)
