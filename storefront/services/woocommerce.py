# storefront/services/woocommerce.py
"""
Client for the commerce backend (WooCommerce REST API, wc/v3).

Catalog reads are cached for a short TTL; coupons, searches and orders are
always fetched fresh. Idempotent methods (GET/PUT) are retried a bounded
number of times on connection errors and gateway failures; order creation
(POST) never is.
"""
from __future__ import annotations
import logging
import threading
import time
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..utils.errors import RemoteCallError

log = logging.getLogger(__name__)


class TTLCache:
    """Thread-safe TTL cache; expired entries are swept on write and ``maxsize`` bounds it."""

    def __init__(self, ttl: float, maxsize: int = 512, clock=time.monotonic):
        self.ttl = ttl
        self.maxsize = maxsize
        self.clock = clock
        self._data = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._data)

    def get(self, key):
        with self._lock:
            hit = self._data.get(key)
            if hit is None:
                return None
            stored_at, value = hit
            if self.clock() - stored_at > self.ttl:
                self._data.pop(key, None)
                return None
            return value

    def set(self, key, value):
        with self._lock:
            now = self.clock()
            self._sweep(now)
            if key not in self._data and len(self._data) >= self.maxsize:
                # oldest write goes first; dicts keep insertion order
                self._data.pop(next(iter(self._data)), None)
            self._data.pop(key, None)
            self._data[key] = (now, value)

    def _sweep(self, now):
        expired = [k for k, (stored_at, _) in self._data.items() if now - stored_at > self.ttl]
        for k in expired:
            self._data.pop(k, None)

    def clear(self):
        with self._lock:
            self._data.clear()


def _clean_params(params: dict | None) -> dict:
    out = {}
    for k, v in (params or {}).items():
        if v is None:
            continue
        if isinstance(v, (list, tuple)):
            v = ",".join(str(x) for x in v)
        elif isinstance(v, bool):
            v = "true" if v else "false"
        out[k] = v
    return out


class WooCommerceClient:
    def __init__(self, base_url: str, consumer_key: str, consumer_secret: str, *,
                 cache_ttl: float = 300, timeout: float = 15, retries: int = 2,
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = TTLCache(cache_ttl)
        if session is None:
            session = requests.Session()
            retry = Retry(
                total=retries,
                backoff_factor=0.3,
                status_forcelist=(502, 503, 504),
                allowed_methods=frozenset({"GET", "PUT"}),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        session.auth = (consumer_key, consumer_secret)
        session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        self.session = session

    @classmethod
    def from_config(cls, config) -> "WooCommerceClient":
        return cls(
            config["WC_BASE_URL"],
            config["WC_CONSUMER_KEY"],
            config["WC_CONSUMER_SECRET"],
            cache_ttl=config["CATALOG_CACHE_TTL"],
            timeout=config["WC_TIMEOUT"],
            retries=config["WC_RETRIES"],
        )

    # ---- transport -----------------------------------------------------------
    def _request(self, method: str, endpoint: str, *, params=None, json=None, headers=None, cache=False):
        params = _clean_params(params)
        cache_key = f"{endpoint}?{urlencode(sorted(params.items()))}"
        if cache:
            hit = self.cache.get(cache_key)
            if hit is not None:
                return hit

        url = f"{self.base_url}/{endpoint}"
        try:
            resp = self.session.request(method, url, params=params or None, json=json,
                                        headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("backend %s %s failed: %s", method, endpoint, e)
            raise RemoteCallError(f"{method} {endpoint}: {e}") from e

        if not resp.ok:
            try:
                payload = resp.json()
            except ValueError:
                payload = None
            log.error("backend %s %s -> %s", method, endpoint, resp.status_code)
            raise RemoteCallError(
                f"{method} {endpoint}: {resp.status_code} {resp.text[:500]}",
                status=resp.status_code,
                payload=payload,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteCallError(f"{method} {endpoint}: malformed JSON") from e

        if cache:
            self.cache.set(cache_key, data)
        return data

    def clear_cache(self):
        self.cache.clear()

    # ---- catalog -------------------------------------------------------------
    def get_products(self, per_page=None, page=None, orderby=None, order=None,
                     category=None, include=None):
        return self._request("GET", "products", params={
            "per_page": per_page, "page": page, "orderby": orderby,
            "order": order, "category": category, "include": include,
        }, cache=True)

    def get_product(self, product_id: int):
        return self._request("GET", f"products/{int(product_id)}", cache=True)

    def get_categories(self, per_page=None, orderby=None, order=None, hide_empty=None):
        return self._request("GET", "products/categories", params={
            "per_page": per_page, "orderby": orderby, "order": order, "hide_empty": hide_empty,
        }, cache=True)

    def get_category(self, category_id: int):
        return self._request("GET", f"products/categories/{int(category_id)}", cache=True)

    def get_products_by_category(self, category_id: int, per_page=None, page=None,
                                 orderby=None, order=None):
        return self.get_products(per_page=per_page, page=page, orderby=orderby,
                                 order=order, category=int(category_id))

    def search_products(self, search: str, per_page=None, page=None):
        return self._request("GET", "products", params={
            "search": search, "per_page": per_page, "page": page,
        })

    # ---- coupons -------------------------------------------------------------
    def find_coupons(self, code: str):
        data = self._request("GET", "coupons", params={"search": code})
        if not isinstance(data, list):
            raise RemoteCallError("GET coupons: expected a list")
        return data

    # ---- orders --------------------------------------------------------------
    def create_order(self, payload: dict, idempotency_key: str | None = None):
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return self._request("POST", "orders", json=payload, headers=headers)

    def get_order(self, order_id: int):
        return self._request("GET", f"orders/{int(order_id)}")

    def update_order(self, order_id: int, payload: dict):
        return self._request("PUT", f"orders/{int(order_id)}", json=payload)

    def find_orders(self, search: str | None = None, status: str | None = None, per_page: int | None = None):
        data = self._request("GET", "orders", params={"search": search, "status": status, "per_page": per_page})
        if not isinstance(data, list):
            raise RemoteCallError("GET orders: expected a list")
        return data
