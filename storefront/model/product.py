# storefront/model/product.py
# Reshapes backend (wc/v3) product and category records for the API.

def _main_image(p: dict):
    images = p.get("images") or []
    if not images:
        return None
    first = images[0] or {}
    return first.get("src")

def product_as_api(p: dict) -> dict:
    return {
        "id": p.get("id"),
        "name": p.get("name"),
        "slug": p.get("slug"),
        "permalink": p.get("permalink"),
        "price": p.get("price") or "0",
        "regular_price": p.get("regular_price") or None,
        "sale_price": p.get("sale_price") or None,
        "on_sale": bool(p.get("on_sale")),
        "short_description": p.get("short_description") or "",
        "image_url": _main_image(p),
        "images": [
            {"id": img.get("id"), "src": img.get("src"), "alt": img.get("alt") or ""}
            for img in (p.get("images") or [])
        ],
        "categories": [
            {"id": c.get("id"), "name": c.get("name"), "slug": c.get("slug")}
            for c in (p.get("categories") or [])
        ],
        "stock_status": p.get("stock_status"),
        "stock_quantity": p.get("stock_quantity"),
    }

def category_as_api(c: dict) -> dict:
    image = c.get("image") or None
    return {
        "id": c.get("id"),
        "name": c.get("name"),
        "slug": c.get("slug"),
        "parent": c.get("parent") or 0,
        "description": c.get("description") or "",
        "image_url": image.get("src") if image else None,
        "count": c.get("count") or 0,
    }
