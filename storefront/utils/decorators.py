# ------- storefront/utils/decorators.py -------
from functools import wraps
from flask import g, jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..utils.api import api_error

def _current_session_id():
    verify_jwt_in_request()
    sid = get_jwt_identity()
    return str(sid) if sid else None

def session_required(fn):
    """Resolve the shopper session from the bearer token into g.session_id."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        sid = _current_session_id()
        if not sid:
            return jsonify(api_error("Unauthorized")), 401
        g.session_id = sid
        return fn(*args, **kwargs)
    return wrapper
