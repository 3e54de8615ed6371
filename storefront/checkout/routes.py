# storefront/checkout/routes.py
from __future__ import annotations
from flask import g, request, jsonify
from ..services import checkout_for
from ..utils.api import api_ok, api_error
from ..utils.decorators import session_required
from ..utils.errors import RedirectToCart
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

@bp.get("")
@session_required
def get_state():
    return ok("checkout", checkout_for(g.session_id).as_api())

@bp.post("")
@session_required
def place_order():
    """
    Body: { "shipping_method"?: str, "customer": { first_name, last_name, email, phone,
                          address_1, address_2?, city, postcode, country } }
    Submitting the same cart twice answers with the already placed order;
    corrected customer details are written onto that order.
    """
    data = request.get_json(silent=True) or {}
    checkout = checkout_for(g.session_id)
    checkout.place_order(data.get("customer") or {}, data.get("shipping_method"))
    return ok("order placed", checkout.as_api(), status=201)

@bp.delete("")
@session_required
def abandon():
    checkout = checkout_for(g.session_id)
    checkout.abandon()
    return ok("checkout reset", checkout.as_api())

@bp.get("/payment")
@session_required
def payment_step():
    checkout = checkout_for(g.session_id)
    try:
        checkout.enter_payment()
    except RedirectToCart as e:
        # not an error for the client: it should navigate back to the cart
        return jsonify(api_error(e.message, e.as_data())), e.status_code
    return ok("payment", checkout.as_api())

@bp.post("/payment")
@session_required
def pay():
    """
    Body: { "method": "card"|"ideal"|"klarna"|"bancontact", "paymentData": {...} }
    Redirect mode answers with payment_url; simulate mode completes the order.
    """
    data = request.get_json(silent=True) or {}
    checkout = checkout_for(g.session_id)
    confirmed = checkout.pay(data.get("method"), data.get("paymentData") or {})
    return ok("payment", {**checkout.as_api(), "payment": confirmed.as_api()})

@bp.get("/return")
@session_required
def payment_return():
    checkout = checkout_for(g.session_id)
    checkout.confirm_return(request.args.get("key"))
    return ok("checkout", checkout.as_api())

@bp.get("/success")
@session_required
def success():
    checkout = checkout_for(g.session_id)
    order_id = checkout.completed_order()
    if order_id is None:
        return jsonify(api_error("Geen afgeronde bestelling gevonden", {"redirect": "/cart"})), 404
    return ok("Bedankt voor je bestelling", {"order_id": order_id})
