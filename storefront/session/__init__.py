from flask import Blueprint

bp = Blueprint("session", __name__, url_prefix="/session")

from . import routes  # noqa: E402,F401
