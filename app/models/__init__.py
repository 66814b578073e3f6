from .products import Category, Product, ProductImage
from .order import Order, OrderItem, OrderStatus, DeliveryMethod
from .admin import AdminPasscode

__all__ = [
    "Category",
    "Product",
    "ProductImage",
    "Order",
    "OrderItem",
    "OrderStatus",
    "DeliveryMethod",
    "AdminPasscode",
]
