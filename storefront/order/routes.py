# storefront/order/routes.py
from flask import request, jsonify
from ..services import fetch_order
from ..utils.api import api_ok
from ..utils.errors import AccessDenied, ValidationError
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def order_as_api(o: dict) -> dict:
    return {
        "id": o.get("id"),
        "status": o.get("status"),
        "total": o.get("total"),
        "currency": o.get("currency") or "EUR",
        "payment_method": o.get("payment_method"),
        "payment_method_title": o.get("payment_method_title"),
        "date_created": o.get("date_created"),
        "billing": o.get("billing") or {},
        "shipping": o.get("shipping") or {},
        "line_items": [
            {"product_id": li.get("product_id"), "name": li.get("name"),
             "quantity": li.get("quantity"), "total": li.get("total")}
            for li in (o.get("line_items") or [])
        ],
    }

@bp.get("/check")
def check_order():
    """
    Query params:
      - orderId (required)
      - key     order key; when given it must match the order
    """
    raw_id = (request.args.get("orderId") or request.args.get("order_id") or "").strip()
    if not raw_id:
        raise ValidationError("orderId is required")
    try:
        order_id = int(raw_id)
    except ValueError:
        raise ValidationError("orderId must be an integer")

    o = fetch_order(order_id)
    key = request.args.get("key")
    if key and key != o.get("order_key"):
        raise AccessDenied("Ongeldige bestelsleutel")
    return ok("order", {"order": order_as_api(o)})
