"""
Schemas para órdenes.
"""
from pydantic import BaseModel, EmailStr, Field, validator
from typing import List, Optional

from models.order import DeliveryMethod, OrderStatus


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseModel):
    """
    Item del carrito. El precio NO viene del cliente: se copia del producto
    al momento de crear la orden.
    """
    product_id: str = Field(..., min_length=1, description="ID del producto")
    quantity: int = Field(..., ge=1, description="Cantidad del producto")


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseModel):
    """Crear orden (checkout sin cuenta)"""
    name: str = Field(..., min_length=1, max_length=255, description="Nombre del cliente")
    address: str = Field(..., min_length=1, max_length=255, description="Dirección de entrega")
    telephone: str = Field(..., min_length=7, max_length=20, description="Teléfono de contacto")
    email: EmailStr = Field(..., description="Email del cliente")
    note: Optional[str] = Field(None, max_length=500, description="Notas del cliente")
    delivery_method: DeliveryMethod = Field(..., description="delivery o pickup")
    items: List[OrderItemCreate] = Field(..., min_length=1, description="Productos de la orden")

    @validator('name', 'address', 'telephone')
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El campo no puede estar vacío')
        return v

    @validator('items')
    def validate_items(cls, v):
        """Un producto solo puede aparecer una vez por orden"""
        product_ids = [item.product_id for item in v]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError('Hay productos repetidos en la orden')
        return v


# ==================== ADMIN SCHEMAS ====================

class OrderStatusUpdate(BaseModel):
    """Actualizar estado de orden (admin)"""
    status: OrderStatus = Field(..., description="Nuevo estado de la orden")
