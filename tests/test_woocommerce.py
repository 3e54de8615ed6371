# tests/test_woocommerce.py
import pytest
import requests

from storefront.services.woocommerce import TTLCache, WooCommerceClient, _clean_params
from storefront.utils.errors import RemoteCallError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.auth = None

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def client(*responses, **kw):
    session = FakeSession(*responses)
    return WooCommerceClient("https://shop.test/wp-json/wc/v3/", "ck", "cs", session=session, **kw), session


def test_auth_and_headers_set_on_session():
    _, session = client()
    assert session.auth == ("ck", "cs")
    assert session.headers["Accept"] == "application/json"


def test_catalog_reads_are_cached():
    wc, session = client(FakeResponse(200, {"id": 5, "name": "Noodradio"}))
    assert wc.get_product(5)["name"] == "Noodradio"
    assert wc.get_product(5)["name"] == "Noodradio"
    assert len(session.calls) == 1
    method, url, _ = session.calls[0]
    assert (method, url) == ("GET", "https://shop.test/wp-json/wc/v3/products/5")


def test_cache_expires():
    now = [0.0]
    cache = TTLCache(10, clock=lambda: now[0])
    cache.set("k", 1)
    assert cache.get("k") == 1
    now[0] = 11
    assert cache.get("k") is None


def test_cache_sweeps_expired_entries_on_write():
    now = [0.0]
    cache = TTLCache(10, clock=lambda: now[0])
    for i in range(5):
        cache.set(f"old{i}", i)
    now[0] = 11
    cache.set("new", 1)
    assert len(cache) == 1
    assert cache.get("new") == 1


def test_cache_is_bounded():
    now = [0.0]
    cache = TTLCache(10, maxsize=3, clock=lambda: now[0])
    for i in range(5):
        now[0] = i * 0.1
        cache.set(f"k{i}", i)
    assert len(cache) == 3
    assert cache.get("k0") is None
    assert cache.get("k1") is None
    assert [cache.get(f"k{i}") for i in (2, 3, 4)] == [2, 3, 4]

    # overwriting an existing key does not evict another one
    cache.set("k4", 40)
    assert len(cache) == 3
    assert cache.get("k2") == 2


def test_orders_are_never_cached():
    wc, session = client(FakeResponse(200, {"id": 1, "status": "pending"}),
                         FakeResponse(200, {"id": 1, "status": "processing"}))
    assert wc.get_order(1)["status"] == "pending"
    assert wc.get_order(1)["status"] == "processing"
    assert len(session.calls) == 2


def test_create_order_sends_idempotency_header():
    wc, session = client(FakeResponse(201, {"id": 9, "order_key": "wc_order_9"}))
    wc.create_order({"status": "pending"}, idempotency_key="abc123")
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url.endswith("/orders")
    assert kwargs["headers"] == {"Idempotency-Key": "abc123"}
    assert kwargs["json"] == {"status": "pending"}


def test_http_error_becomes_remote_call_error():
    wc, _ = client(FakeResponse(404, {"code": "woocommerce_rest_shop_order_invalid_id",
                                      "message": "Ongeldige ID."}))
    with pytest.raises(RemoteCallError) as exc:
        wc.get_order(77)
    assert exc.value.status == 404
    assert exc.value.backend_message() == "Ongeldige ID."
    assert exc.value.status_code == 502


def test_network_error_becomes_remote_call_error():
    wc, _ = client(requests.ConnectionError("connection refused"))
    with pytest.raises(RemoteCallError) as exc:
        wc.get_products()
    assert exc.value.status is None


def test_malformed_json():
    wc, _ = client(FakeResponse(200, ValueError("no json"), text="<html>"))
    with pytest.raises(RemoteCallError):
        wc.get_categories()


def test_find_coupons_uses_search_and_requires_list():
    wc, session = client(FakeResponse(200, [{"code": "save10"}]), FakeResponse(200, {"code": "save10"}))
    assert wc.find_coupons("SAVE10") == [{"code": "save10"}]
    assert session.calls[0][2]["params"] == {"search": "SAVE10"}
    with pytest.raises(RemoteCallError):
        wc.find_coupons("SAVE10")


def test_clean_params_drops_none_and_joins_lists():
    assert _clean_params({"a": None, "b": [1, 2], "c": True, "d": 3}) == {"b": "1,2", "c": "true", "d": 3}


def test_find_orders_is_uncached_and_requires_list():
    wc, session = client(FakeResponse(200, [{"id": 1}]), FakeResponse(200, [{"id": 1}, {"id": 2}]),
                         FakeResponse(200, {"id": 1}))
    assert wc.find_orders(search="anna@example.nl", status="pending") == [{"id": 1}]
    assert session.calls[0][2]["params"] == {"search": "anna@example.nl", "status": "pending"}
    assert len(wc.find_orders(search="anna@example.nl", status="pending")) == 2
    with pytest.raises(RemoteCallError):
        wc.find_orders()
