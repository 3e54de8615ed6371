# storefront/cart/routes.py
from __future__ import annotations
from flask import current_app, g, request, jsonify

from ..model import ProductRef
from ..services import cart_for, coupon_validator, fetch_product
from ..utils.api import api_ok
from ..utils.decorators import session_required
from ..utils.errors import BusinessRuleViolation, ValidationError
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

# ---- helpers ---------------------------------------------------------------
def _country():
    return (request.args.get("country") or current_app.config["DEFAULT_COUNTRY"]).strip().upper()

def _int_field(data: dict, *names, default=None) -> int:
    raw = next((data[n] for n in names if data.get(n) is not None), default)
    if isinstance(raw, bool):
        raise ValidationError(f"{names[0]} must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{names[0]} must be an integer")

# ---- endpoints -------------------------------------------------------------
@bp.get("")
@session_required
def get_cart():
    cart = cart_for(g.session_id)
    return ok("cart", cart.as_api(_country()))

@bp.post("/items")
@session_required
def add_item():
    """
    Body: { "product_id": int, "quantity" | "qty": int }
    """
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        raise ValidationError("product_id is required")
    product_id = _int_field(data, "product_id")
    qty = _int_field(data, "quantity", "qty", default=1)
    if qty < 1:
        raise ValidationError("quantity must be >= 1")

    p = fetch_product(product_id)
    if p.get("stock_status") == "outofstock":
        raise BusinessRuleViolation("Dit product is niet op voorraad")

    cart = cart_for(g.session_id)
    item = cart.add_item(ProductRef.from_backend(p), qty)
    current_app.logger.info("cart %s: added product %s x%s", g.session_id, item.product_id, qty)
    return ok("item added", {
        **cart.as_api(_country()),
        "item": item.as_api(),
        "cart_open": cart.is_open,
    }, status=201)

@bp.patch("/items/<int:product_id>")
@session_required
def set_quantity(product_id: int):
    data = request.get_json(silent=True) or {}
    qty = _int_field(data, "quantity", "qty")
    cart = cart_for(g.session_id)
    cart.set_quantity(product_id, qty)
    return ok("cart updated", cart.as_api(_country()))

@bp.delete("/items/<int:product_id>")
@session_required
def remove_item(product_id: int):
    cart = cart_for(g.session_id)
    cart.remove_item(product_id)
    return ok("item removed", cart.as_api(_country()))

@bp.delete("")
@session_required
def clear_cart():
    cart = cart_for(g.session_id)
    cart.clear()
    return ok("cart cleared", cart.as_api(_country()))

@bp.post("/coupon")
@session_required
def apply_coupon():
    """Validate a code against the current subtotal and apply it (replaces any previous coupon)."""
    data = request.get_json(silent=True) or {}
    cart = cart_for(g.session_id)
    subtotal = cart.totals(_country()).subtotal
    coupon = coupon_validator().validate(data.get("code"), subtotal)
    cart.apply_coupon(coupon)
    return ok("coupon applied", {**cart.as_api(_country()), "valid": True})

@bp.delete("/coupon")
@session_required
def remove_coupon():
    cart = cart_for(g.session_id)
    cart.remove_coupon()
    return ok("coupon removed", cart.as_api(_country()))
