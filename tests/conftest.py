# tests/conftest.py
import copy

import pytest

from storefront import create_app
from storefront.utils.errors import RemoteCallError

JWT_TEST_SECRET = "test-secret-key-with-at-least-32-bytes!!"

CUSTOMER = {
    "first_name": "Anna",
    "last_name": "de Vries",
    "email": "anna@example.nl",
    "phone": "0612345678",
    "address_1": "Damrak 1",
    "city": "Amsterdam",
    "postcode": "1012LG",
    "country": "nl",
}


def wc_product(pid, price, name=None, stock_status="instock"):
    return {
        "id": pid,
        "name": name or f"Product {pid}",
        "slug": f"product-{pid}",
        "price": price,
        "regular_price": price,
        "sale_price": "",
        "on_sale": False,
        "images": [{"id": pid * 10, "src": f"https://img.test/{pid}.jpg", "alt": ""}],
        "categories": [{"id": 7, "name": "Noodpakketten", "slug": "noodpakketten"}],
        "stock_status": stock_status,
    }


def wc_coupon(code="SAVE10", **overrides):
    c = {
        "id": 11,
        "code": code.lower(),
        "discount_type": "percent",
        "amount": "10.00",
        "description": "",
        "minimum_amount": "20.00",
        "maximum_amount": "0.00",
        "usage_limit": None,
        "usage_count": 0,
        "date_expires": None,
        "date_expires_gmt": None,
    }
    c.update(overrides)
    return c


class FakeBackend:
    """In-memory stand-in for the WooCommerce client."""

    def __init__(self):
        self.products = {
            1: wc_product(1, "20.00", "Noodradio"),
            2: wc_product(2, "15.00", "Zaklamp"),
            3: wc_product(3, "9.95", "Waterfilter", stock_status="outofstock"),
        }
        self.categories = {7: {"id": 7, "name": "Noodpakketten", "slug": "noodpakketten", "count": 2}}
        self.coupons = [wc_coupon()]
        self.orders = {}
        self.created = []
        self.updates = []
        self.fail_create = False
        self.fail_coupons = False
        self.decline_payments = False
        self._next_id = 1000

    # catalog
    def get_products(self, per_page=None, page=None, orderby=None, order=None, category=None, include=None):
        items = list(self.products.values())
        if category is not None:
            items = [p for p in items if any(c["id"] == category for c in p["categories"])]
        return copy.deepcopy(items)

    def get_product(self, product_id):
        if product_id not in self.products:
            raise RemoteCallError(f"GET products/{product_id}: 404", status=404,
                                  payload={"code": "woocommerce_rest_product_invalid_id"})
        return copy.deepcopy(self.products[product_id])

    def get_categories(self, per_page=None, orderby=None, order=None, hide_empty=None):
        return copy.deepcopy(list(self.categories.values()))

    def get_category(self, category_id):
        return copy.deepcopy(self.categories[category_id])

    def get_products_by_category(self, category_id, per_page=None, page=None, orderby=None, order=None):
        return self.get_products(category=category_id)

    def search_products(self, search, per_page=None, page=None):
        return [copy.deepcopy(p) for p in self.products.values() if search.lower() in p["name"].lower()]

    # coupons
    def find_coupons(self, code):
        if self.fail_coupons:
            raise RemoteCallError("GET coupons: 500", status=500)
        return [copy.deepcopy(c) for c in self.coupons if code.lower() in c["code"].lower()]

    # orders
    def create_order(self, payload, idempotency_key=None):
        if self.fail_create:
            raise RemoteCallError("POST orders: 500", status=500, payload={"message": "boom"})
        self._next_id += 1
        oid = self._next_id
        order = {
            "id": oid,
            "order_key": f"wc_order_{oid}",
            "status": payload.get("status", "pending"),
            "currency": "EUR",
            "total": "60.50",
            "payment_method": "",
            "payment_method_title": "",
            "date_created": "2026-10-19T10:00:00",
            "billing": payload.get("billing"),
            "shipping": payload.get("shipping"),
            "line_items": [{"product_id": li["product_id"], "quantity": li["quantity"],
                            "name": self.products[li["product_id"]]["name"], "total": "0.00"}
                           for li in payload.get("line_items", [])],
            "meta_data": payload.get("meta_data", []),
        }
        self.orders[oid] = order
        self.created.append((payload, idempotency_key))
        return copy.deepcopy(order)

    def get_order(self, order_id):
        if order_id not in self.orders:
            raise RemoteCallError(f"GET orders/{order_id}: 404", status=404)
        return copy.deepcopy(self.orders[order_id])

    def update_order(self, order_id, payload):
        if order_id not in self.orders:
            raise RemoteCallError(f"PUT orders/{order_id}: 404", status=404)
        if self.decline_payments and payload.get("set_paid"):
            raise RemoteCallError(f"PUT orders/{order_id}: 402", status=402,
                                  payload={"message": "Kaart geweigerd"})
        self.updates.append((order_id, payload))
        order = self.orders[order_id]
        for k, v in payload.items():
            if k in ("set_paid", "meta_data"):
                continue
            order[k] = v
        return copy.deepcopy(order)

    def find_orders(self, search=None, status=None, per_page=None):
        found = []
        for order in self.orders.values():
            email = (order.get("billing") or {}).get("email", "")
            if search and search.lower() not in email.lower():
                continue
            if status and order["status"] != status:
                continue
            found.append(copy.deepcopy(order))
        return found


@pytest.fixture
def fake_backend():
    return FakeBackend()


def make_app(backend, **config):
    overrides = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "JWT_SECRET_KEY": JWT_TEST_SECRET,
        "PAYMENT_MODE": "simulate",
        "STORE_BASE_URL": "https://shop.test",
    }
    overrides.update(config)
    return create_app(overrides, backend=backend)


@pytest.fixture
def app(fake_backend):
    app = make_app(fake_backend)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    r = client.post("/session")
    assert r.status_code == 201
    token = r.get_json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}
