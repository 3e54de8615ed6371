from flask import request, jsonify
from ..model import product_as_api, category_as_api
from ..services import backend, fetch_product
from ..utils.api import api_ok
from . import bp

# ---------- helpers ----------
_ORDER_BY = {"date", "id", "include", "title", "slug", "price", "popularity", "rating", "menu_order"}

def _to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def _list_params():
    page = max(_to_int(request.args.get("page"), 1), 1)
    per_page = min(max(_to_int(request.args.get("per_page"), 20), 1), 100)
    orderby = (request.args.get("orderby") or "").strip() or None
    if orderby not in _ORDER_BY:
        orderby = None
    order = (request.args.get("order") or "").strip().lower()
    order = order if order in ("asc", "desc") else None
    return {"page": page, "per_page": per_page, "orderby": orderby, "order": order}

# ---------- products ----------
@bp.get("")
def list_products():
    params = _list_params()
    category = _to_int(request.args.get("category"))
    items = backend().get_products(category=category, **params)
    return jsonify(api_ok("products", {
        "page": params["page"],
        "per_page": params["per_page"],
        "items": [product_as_api(p) for p in items],
    })), 200

@bp.get("/<int:product_id>")
def get_product(product_id: int):
    p = fetch_product(product_id)
    return jsonify(api_ok("product", {"product": product_as_api(p)})), 200

@bp.get("/search")
def search_products():
    q = (request.args.get("q") or "").strip()
    if not q:
        return jsonify(api_ok("products", {"items": []})), 200
    page = max(_to_int(request.args.get("page"), 1), 1)
    items = backend().search_products(q, per_page=20, page=page)
    return jsonify(api_ok("products", {"q": q, "items": [product_as_api(p) for p in items]})), 200

# ---------- categories ----------
@bp.get("/categories")
def list_categories():
    hide_empty = request.args.get("hide_empty")
    items = backend().get_categories(
        per_page=min(max(_to_int(request.args.get("per_page"), 100), 1), 100),
        orderby="name",
        order="asc",
        hide_empty=None if hide_empty is None else hide_empty.lower() in ("1", "true", "yes"),
    )
    return jsonify(api_ok("categories", {"items": [category_as_api(c) for c in items]})), 200

@bp.get("/categories/<int:category_id>")
def get_category(category_id: int):
    c = backend().get_category(category_id)
    return jsonify(api_ok("category", {"category": category_as_api(c)})), 200

@bp.get("/categories/<int:category_id>/products")
def products_by_category(category_id: int):
    params = _list_params()
    items = backend().get_products_by_category(category_id, **params)
    return jsonify(api_ok("products", {
        "category_id": category_id,
        "page": params["page"],
        "per_page": params["per_page"],
        "items": [product_as_api(p) for p in items],
    })), 200
