from shopapi.models.base import Base
from shopapi.models.user import User
from shopapi.models.product import Product, Store
from shopapi.models.order import Order, OrderItem, OrderStatus, Payment, PaymentStatus
from shopapi.models.points import PointReason, PointTransaction

__all__ = [
    "Base",
    "User",
    "Store",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "PointReason",
    "PointTransaction",
]
