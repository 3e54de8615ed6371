# storefront/coupon/routes.py
from __future__ import annotations
from flask import request, jsonify, current_app
from ..services import coupon_validator
from ..utils.api import api_ok
from . import bp

@bp.post("/validate")
def validate_coupon():
    """
    Body: { "code": str, "cartTotal": number }
    A rejected code answers with the coupon error's status and
    data { valid: false, reason }.
    """
    data = request.get_json(silent=True) or {}
    code = data.get("code")
    cart_total = data.get("cartTotal", data.get("cart_total"))

    coupon = coupon_validator().validate(code, cart_total)
    current_app.logger.info("coupon %s validated against %s", coupon.code, cart_total)
    return jsonify(api_ok("Kortingscode toegepast", {
        "valid": True,
        "coupon": coupon.as_api(),
    })), 200
