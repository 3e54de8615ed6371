# storefront/session/routes.py
import uuid
from flask import jsonify
from flask_jwt_extended import create_access_token

from ..utils.api import api_ok
from . import bp

@bp.post("")
def create_session():
    """Start a shopper session; the token scopes cart and checkout state."""
    session_id = str(uuid.uuid4())
    token = create_access_token(identity=session_id)
    return jsonify(api_ok("session ready", {"session_id": session_id, "token": token})), 201
