from .admin import AdminLogin
from .orders import OrderCreate, OrderItemCreate, OrderStatusUpdate
from .products import CategoryCreate, CategoryUpdate

__all__ = [
    "AdminLogin",
    "OrderCreate",
    "OrderItemCreate",
    "OrderStatusUpdate",
    "CategoryCreate",
    "CategoryUpdate",
]
