from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from core.database import Base
from core.identifiers import new_id, utcnow
import enum

# Estados de la orden
class OrderStatus(str, enum.Enum):
    ORDERED = "ordered"        # Orden recibida
    SHIPPED = "shipped"        # Enviada
    DELIVERED = "delivered"    # Entregada
    CANCELLED = "cancelled"    # Cancelada

# Método de entrega
class DeliveryMethod(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


# Transiciones válidas; DELIVERED y CANCELLED son finales
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.ORDERED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(255), primary_key=True, default=new_id)  # ID interno
    order_code = Column(String(32), unique=True, nullable=False, index=True)  # ID visible (ORDER-4410)

    # Datos del cliente
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False)
    telephone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=False)
    note = Column(String(500), nullable=True)

    delivery_method = Column(
        SQLEnum(DeliveryMethod, name="delivery_method", values_callable=_enum_values),
        nullable=False
    )
    status = Column(
        SQLEnum(OrderStatus, name="order_status", values_callable=_enum_values),
        nullable=False,
        default=OrderStatus.ORDERED,
        index=True
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", passive_deletes=True)


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(String(255), primary_key=True, default=new_id)
    order_id = Column(String(255), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(255), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)  # Precio unitario al momento de la compra

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
