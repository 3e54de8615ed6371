# ------ storefront/model/__init__.py ------

from .storage import StorageEntry
from .cart import ProductRef, LineItem
from .coupon import Coupon, DiscountType
from .order import Customer, OrderSnapshot, PendingOrderReference, ConfirmedOrder
from .product import product_as_api, category_as_api

__all__ = [
    "StorageEntry",
    "ProductRef",
    "LineItem",
    "Coupon",
    "DiscountType",
    "Customer",
    "OrderSnapshot",
    "PendingOrderReference",
    "ConfirmedOrder",
    "product_as_api",
    "category_as_api",
]
