# storefront/services/__init__.py
# Per-request wiring of the core objects for one shopper session.
from datetime import timedelta

from flask import current_app

from .cart_store import CartStore
from .checkout import CheckoutSequencer
from .coupon_service import CouponValidator
from .storage import DURABLE, TRANSIENT, DbStore
from ..utils.errors import NotFoundError, RemoteCallError


def backend():
    return current_app.extensions["woocommerce"]

def pricing_rules():
    return current_app.extensions["pricing"]

def payment_bridge():
    return current_app.extensions["payment_bridge"]

def coupon_validator() -> CouponValidator:
    return CouponValidator(backend())

def cart_for(session_id: str) -> CartStore:
    return CartStore(DbStore(session_id, DURABLE), pricing_rules())

def checkout_for(session_id: str, cart: CartStore | None = None) -> CheckoutSequencer:
    ttl = timedelta(minutes=current_app.config["TRANSIENT_TTL_MINUTES"])
    return CheckoutSequencer(
        session_id,
        cart or cart_for(session_id),
        backend(),
        payment_bridge(),
        transient=DbStore(session_id, TRANSIENT, ttl=ttl),
        durable=DbStore(session_id, DURABLE),
    )

def fetch_product(product_id: int) -> dict:
    try:
        return backend().get_product(product_id)
    except RemoteCallError as e:
        if e.status == 404:
            raise NotFoundError("Product niet gevonden") from e
        raise

def fetch_order(order_id: int) -> dict:
    try:
        return backend().get_order(order_id)
    except RemoteCallError as e:
        if e.status == 404:
            raise NotFoundError("Bestelling niet gevonden") from e
        raise
