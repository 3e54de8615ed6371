# storefront/services/checkout.py
"""
Checkout handoff: cart -> placed order -> payment -> paid.

The flow is an explicit state machine. States are frozen dataclasses and
``transition()`` is the only way to move between them; a payment state can
only exist together with the order snapshot and reference it pays for.

State lives in the session's transient storage; the completed order id
survives in durable storage.
"""
from __future__ import annotations
import hashlib
import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal

from ..model import ConfirmedOrder, Customer, OrderSnapshot, PendingOrderReference
from ..utils.errors import (
    AccessDenied, IllegalTransition, PaymentError, RedirectToCart,
    RemoteCallError, StorefrontError, ValidationError,
)
from ..utils.money import D, to_string_money
from .cart_store import CartStore
from .payment import FAILED_STATUSES, PAID_STATUSES, PaymentBridge
from .storage import KeyValueStore, load_json, save_json

log = logging.getLogger(__name__)

STATE_KEY = "checkoutState"
ORDER_DATA_KEY = "orderData"
PENDING_ORDER_KEY = "pendingOrderId"
PAYMENT_ERROR_KEY = "paymentError"
PAYMENT_METHOD_KEY = "selectedPaymentMethod"
COMPLETED_ORDER_KEY = "completedOrderId"
PLACEMENT_KEY = "idempotencyKey"

RECONCILE_TOLERANCE = Decimal("0.01")
PLACEMENT_FAILED_MESSAGE = "Bestelling mislukt. Probeer het opnieuw."
PLACEMENT_BUSY_MESSAGE = "Je bestelling wordt al verwerkt. Even geduld."
IDEMPOTENCY_META = "_idempotency_key"


# ---- states ----------------------------------------------------------------------

@dataclass(frozen=True)
class Editing:
    name = "editing"


@dataclass(frozen=True)
class AwaitingPlacement:
    idempotency_key: str
    name = "awaiting_placement"


@dataclass(frozen=True)
class AwaitingPayment:
    snapshot: OrderSnapshot
    reference: PendingOrderReference
    name = "awaiting_payment"


@dataclass(frozen=True)
class Paid:
    order_id: int
    name = "paid"


@dataclass(frozen=True)
class Failed:
    snapshot: OrderSnapshot
    reference: PendingOrderReference
    message: str
    name = "failed"


CheckoutState = Editing | AwaitingPlacement | AwaitingPayment | Paid | Failed


# ---- events ----------------------------------------------------------------------

@dataclass(frozen=True)
class SubmitCheckout:
    idempotency_key: str


@dataclass(frozen=True)
class OrderPlaced:
    snapshot: OrderSnapshot
    reference: PendingOrderReference


@dataclass(frozen=True)
class PlacementFailed:
    message: str


@dataclass(frozen=True)
class RetryPayment:
    pass


@dataclass(frozen=True)
class PaymentSucceeded:
    order_id: int


@dataclass(frozen=True)
class PaymentFailed:
    message: str


@dataclass(frozen=True)
class CustomerUpdated:
    snapshot: OrderSnapshot


@dataclass(frozen=True)
class Reset:
    pass


def transition(state: CheckoutState, event) -> CheckoutState:
    if isinstance(event, Reset):
        return Editing()

    # a placement in flight must resolve (OrderPlaced/PlacementFailed) before another submit
    if isinstance(state, (Editing, Paid)) and isinstance(event, SubmitCheckout):
        return AwaitingPlacement(event.idempotency_key)

    if isinstance(state, (AwaitingPayment, Failed)) and isinstance(event, CustomerUpdated):
        if event.snapshot.order_id != state.reference.order_id:
            raise IllegalTransition(detail="updated snapshot belongs to another order")
        if isinstance(state, Failed):
            return Failed(event.snapshot, state.reference, state.message)
        return AwaitingPayment(event.snapshot, state.reference)

    if isinstance(state, AwaitingPlacement):
        if isinstance(event, OrderPlaced):
            if event.snapshot.order_id != event.reference.order_id:
                raise IllegalTransition(detail="snapshot and order reference disagree")
            return AwaitingPayment(event.snapshot, event.reference)
        if isinstance(event, PlacementFailed):
            return Editing()

    if isinstance(state, AwaitingPayment):
        if isinstance(event, PaymentSucceeded) and event.order_id == state.reference.order_id:
            return Paid(event.order_id)
        if isinstance(event, PaymentFailed):
            return Failed(state.snapshot, state.reference, event.message)

    if isinstance(state, Failed) and isinstance(event, RetryPayment):
        return AwaitingPayment(state.snapshot, state.reference)

    raise IllegalTransition(detail=f"{type(event).__name__} not allowed in state {state.name}")


# ---- helpers ---------------------------------------------------------------------

def cart_fingerprint(cart: CartStore, country: str, shipping_method: str) -> str:
    """Everything that prices the order. Contact and address details are not part of it."""
    body = {
        "items": [[i.product_id, i.quantity, str(i.unit_price)] for i in cart.items],
        "coupon": cart.coupon.code.lower() if cart.coupon else None,
        "country": country,
        "shipping_method": shipping_method,
    }
    return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


def idempotency_key(session_id: str, fingerprint: str) -> str:
    return hashlib.sha256(f"{session_id}:{fingerprint}".encode()).hexdigest()[:32]


def shipping_method_for(shipping: Decimal) -> str:
    return "free_shipping" if shipping == 0 else "flat_rate"


# ---- sequencer -------------------------------------------------------------------

class CheckoutSequencer:
    def __init__(self, session_id: str, cart: CartStore, client, bridge: PaymentBridge, *,
                 transient: KeyValueStore, durable: KeyValueStore):
        self.session_id = session_id
        self.cart = cart
        self.client = client
        self.bridge = bridge
        self.transient = transient
        self.durable = durable
        self._state = self._load()

    @property
    def state(self) -> CheckoutState:
        return self._state

    # ---- persistence -------------------------------------------------------------
    def _load(self) -> CheckoutState:
        name = self.transient.get(STATE_KEY)
        if name in (AwaitingPayment.name, Failed.name):
            pair = self._load_pair()
            if pair is None:
                log.warning("checkout state %r without a valid order snapshot, resetting", name)
                self._forget_order()
                self.transient.set(STATE_KEY, Editing.name)
                return Editing()
            snapshot, reference = pair
            if name == Failed.name:
                message = self.transient.get(PAYMENT_ERROR_KEY) or PaymentError.message
                return Failed(snapshot, reference, message)
            return AwaitingPayment(snapshot, reference)
        if name == AwaitingPlacement.name:
            key = self.transient.get(PLACEMENT_KEY)
            return AwaitingPlacement(key) if key else Editing()
        if name == Paid.name:
            completed = self.completed_order()
            return Paid(completed) if completed else Editing()
        return Editing()

    def _load_pair(self):
        raw_snapshot = load_json(self.transient, ORDER_DATA_KEY)
        raw_reference = load_json(self.transient, PENDING_ORDER_KEY)
        if not raw_snapshot or not raw_reference:
            return None
        try:
            snapshot = OrderSnapshot.from_dict(raw_snapshot)
            reference = PendingOrderReference.from_dict(raw_reference)
        except (KeyError, TypeError, ValueError, StorefrontError) as e:
            log.warning("failed to parse stored order data: %s", e)
            return None
        if snapshot.order_id != reference.order_id:
            log.warning("stored snapshot %s does not match pending order %s",
                        snapshot.order_id, reference.order_id)
            return None
        return snapshot, reference

    def _apply(self, event) -> CheckoutState:
        new = transition(self._state, event)
        self._state = new
        self.transient.set(STATE_KEY, new.name)
        if isinstance(new, AwaitingPlacement):
            self.transient.set(PLACEMENT_KEY, new.idempotency_key)
        if isinstance(new, (AwaitingPayment, Failed)):
            save_json(self.transient, ORDER_DATA_KEY, new.snapshot.as_dict())
            save_json(self.transient, PENDING_ORDER_KEY, new.reference.as_dict())
        if isinstance(new, Failed):
            self.transient.set(PAYMENT_ERROR_KEY, new.message)
        else:
            self.transient.delete(PAYMENT_ERROR_KEY)
        return new

    def _forget_order(self):
        for key in (ORDER_DATA_KEY, PENDING_ORDER_KEY, PAYMENT_ERROR_KEY,
                    PAYMENT_METHOD_KEY, PLACEMENT_KEY):
            self.transient.delete(key)

    # ---- Editing -> AwaitingPlacement -> AwaitingPayment -------------------------
    def place_order(self, customer_data: dict, shipping_method: str | None = None) -> AwaitingPayment:
        customer = Customer.from_payload(customer_data)
        if self.cart.is_empty():
            raise ValidationError("Je winkelwagen is leeg")

        totals = self.cart.totals(customer.country)
        method_id = shipping_method or shipping_method_for(totals.shipping)
        fingerprint = cart_fingerprint(self.cart, customer.country, method_id)
        key = idempotency_key(self.session_id, fingerprint)

        state = self._state
        if isinstance(state, (AwaitingPayment, Failed)):
            return self._reuse_pending(state, customer, fingerprint)
        if isinstance(state, AwaitingPlacement):
            return self._resume_placement(state, key, customer, totals, method_id, fingerprint)

        self._apply(SubmitCheckout(key))
        payload = self._order_payload(customer, totals, key, method_id)
        try:
            order = self.client.create_order(payload, idempotency_key=key)
        except RemoteCallError as e:
            log.error("order creation failed: %s", e.detail)
            self._apply(PlacementFailed(PLACEMENT_FAILED_MESSAGE))
            raise
        return self._placed(order, customer, totals, method_id, fingerprint)

    def _reuse_pending(self, state, customer: Customer, fingerprint: str) -> AwaitingPayment:
        if state.snapshot.fingerprint != fingerprint:
            raise IllegalTransition(
                "Er staat al een bestelling open voor betaling",
                data={"order_id": state.reference.order_id},
            )
        log.info("order %s already placed for this cart, reusing it", state.reference.order_id)
        if state.snapshot.customer != customer:
            state = self._update_customer(state, customer)
        if isinstance(state, Failed):
            state = self._apply(RetryPayment())
        return state

    def _update_customer(self, state, customer: Customer):
        """Corrected contact or address details go onto the pending order."""
        self.client.update_order(state.reference.order_id, {
            "billing": customer.billing(),
            "shipping": customer.shipping(),
        })
        log.info("order %s: customer details updated", state.reference.order_id)
        return self._apply(CustomerUpdated(replace(state.snapshot, customer=customer)))

    def _resume_placement(self, state: AwaitingPlacement, key: str, customer: Customer,
                          totals, method_id: str, fingerprint: str) -> AwaitingPayment:
        # the backend ignores Idempotency-Key, so look the order up by its meta before giving up
        if state.idempotency_key == key:
            order = self._find_placed_order(key, customer.email)
            if order is not None:
                log.info("order %s already created for placement %s, adopting it", order.get("id"), key)
                return self._placed(order, customer, totals, method_id, fingerprint)
        log.info("placement %s still in flight, rejecting resubmit", state.idempotency_key)
        raise IllegalTransition(PLACEMENT_BUSY_MESSAGE)

    def _find_placed_order(self, key: str, email: str) -> dict | None:
        for order in self.client.find_orders(search=email, status="pending"):
            if not isinstance(order, dict):
                continue
            meta = order.get("meta_data") or []
            if any(isinstance(m, dict) and m.get("key") == IDEMPOTENCY_META and m.get("value") == key
                   for m in meta):
                return order
        return None

    def _placed(self, order, customer: Customer, totals, method_id: str, fingerprint: str) -> AwaitingPayment:
        try:
            reference = PendingOrderReference(order_id=int(order["id"]),
                                              order_key=str(order.get("order_key") or ""))
            if not reference.order_key:
                raise KeyError("order_key")
        except (KeyError, TypeError, ValueError) as e:
            log.error("order creation returned an unusable payload: %s", e)
            self._apply(PlacementFailed(PLACEMENT_FAILED_MESSAGE))
            raise RemoteCallError(f"POST orders: unusable payload ({e})") from e

        backend_total = D(order.get("total"))
        if abs(backend_total - totals.total) > RECONCILE_TOLERANCE:
            log.warning("order %s total %s differs from local total %s; backend total is authoritative",
                        reference.order_id, backend_total, totals.total)

        snapshot = OrderSnapshot(
            order_id=reference.order_id,
            line_items=tuple(i.snapshot_line() for i in self.cart.items),
            customer=customer,
            shipping_method=method_id,
            shipping_total=totals.shipping,
            subtotal=totals.subtotal,
            discount=totals.discount,
            vat=totals.vat,
            total=totals.total,
            backend_total=backend_total,
            currency=order.get("currency") or "EUR",
            coupon=self.cart.coupon.as_api() if self.cart.coupon else None,
            fingerprint=fingerprint,
        )
        log.info("order %s placed, awaiting payment", reference.order_id)
        return self._apply(OrderPlaced(snapshot, reference))

    def _order_payload(self, customer: Customer, totals, key: str, method_id: str) -> dict:
        payload = {
            "status": "pending",
            "set_paid": False,
            "billing": customer.billing(),
            "shipping": customer.shipping(),
            "line_items": [i.order_line() for i in self.cart.items],
            "shipping_lines": [{
                "method_id": method_id,
                "method_title": "Gratis verzending" if totals.shipping == 0 else "Verzending",
                "total": to_string_money(totals.shipping),
            }],
            "meta_data": [{"key": IDEMPOTENCY_META, "value": key}],
        }
        if self.cart.coupon:
            payload["coupon_lines"] = [{"code": self.cart.coupon.code}]
        return payload

    # ---- payment step ------------------------------------------------------------
    def enter_payment(self) -> AwaitingPayment | Failed:
        """Guard for the payment step: no snapshot, no payment form."""
        state = self._state
        if isinstance(state, (AwaitingPayment, Failed)):
            return state
        if not isinstance(state, Editing):
            log.info("payment step entered in state %s, sending shopper back to the cart", state.name)
        self._forget_order()
        self._apply(Reset())
        raise RedirectToCart()

    def pay(self, method, payment_details: dict | None = None) -> ConfirmedOrder:
        state = self.enter_payment()
        if isinstance(state, Failed):
            state = self._apply(RetryPayment())

        try:
            confirmed = self.bridge.request(method, state.reference, payment_details)
        except PaymentError as e:
            self._apply(PaymentFailed(e.message))
            raise

        if confirmed.payment_url:
            # redirect mode: the shopper pays on the hosted page
            self.transient.set(PAYMENT_METHOD_KEY, str(getattr(method, "value", method)))
            return confirmed
        self._complete(confirmed.id)
        return confirmed

    def confirm_return(self, order_key: str | None = None) -> CheckoutState:
        """Resolve a redirect-mode payment by polling the backend order."""
        state = self.enter_payment()
        if order_key and order_key != state.reference.order_key:
            raise AccessDenied("Ongeldige bestelsleutel")

        order = self.client.get_order(state.reference.order_id)
        status = (order or {}).get("status") or ""
        if status in PAID_STATUSES:
            if isinstance(state, Failed):
                self._apply(RetryPayment())
            self._complete(state.reference.order_id)
        elif status in FAILED_STATUSES and isinstance(state, AwaitingPayment):
            self._apply(PaymentFailed(PaymentError.message))
        return self._state

    def abandon(self) -> None:
        """Cancel the pending backend order and return to the cart."""
        state = self._state
        if isinstance(state, (AwaitingPayment, Failed)):
            self.client.update_order(state.reference.order_id, {"status": "cancelled"})
            log.info("pending order %s cancelled by shopper", state.reference.order_id)
        self._forget_order()
        self._apply(Reset())

    def _complete(self, order_id: int) -> None:
        self._apply(PaymentSucceeded(order_id))
        self._forget_order()
        self.cart.clear()
        self.durable.set(COMPLETED_ORDER_KEY, str(order_id))
        log.info("order %s paid", order_id)

    def completed_order(self) -> int | None:
        raw = self.durable.get(COMPLETED_ORDER_KEY)
        try:
            return int(raw) if raw else None
        except ValueError:
            return None

    def as_api(self) -> dict:
        state = self._state
        data = {"state": state.name}
        if isinstance(state, (AwaitingPayment, Failed)):
            data["order"] = state.snapshot.as_api()
            data["order_key"] = state.reference.order_key
        if isinstance(state, Failed):
            data["error"] = state.message
        if isinstance(state, Paid):
            data["order_id"] = state.order_id
        return data
