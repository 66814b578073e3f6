from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.orm import Session
from decimal import Decimal
import logging

from core.database import commit_or_bad_request, generate_unique_code
from core.dependencies import get_current_admin, get_db, get_invalidator, get_reader
from core.errors import BadRequestError, NotFoundError
from core.invalidation_service import InvalidationService
from core.rate_limiter import RateLimiter
from core.read_through import ReadThroughService, format_order
from models.admin import AdminPasscode
from models.order import Order, OrderItem, ORDER_STATUS_TRANSITIONS
from models.products import Product
from schemas.orders import OrderCreate, OrderStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])

order_limiter = RateLimiter("orders", lambda s: s.ORDER_RATE_LIMIT)


# ==================== CHECKOUT (PÚBLICO) ====================

@router.post("/order", status_code=201, dependencies=[Depends(order_limiter)])
async def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator)
):
    """
    Registrar una orden.

    El precio de cada item se copia del producto en este momento; cambios
    posteriores de precio no afectan a la orden. Orden e items se guardan
    en un solo commit.
    """
    product_ids = [item.product_id for item in order_data.items]
    products = {
        product.id: product
        for product in db.execute(
            select(Product).where(Product.id.in_(product_ids))
        ).scalars().all()
    }

    missing = [product_id for product_id in product_ids if product_id not in products]
    if missing:
        raise BadRequestError(
            f"Productos no encontrados: {', '.join(missing)}",
            "PRODUCT_NOT_FOUND"
        )

    order = Order(
        order_code=generate_unique_code(db, Order.order_code, "order"),
        name=order_data.name,
        address=order_data.address,
        telephone=order_data.telephone,
        email=order_data.email,
        note=order_data.note,
        delivery_method=order_data.delivery_method
    )
    order.items = [
        OrderItem(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=products[item.product_id].price
        )
        for item in order_data.items
    ]
    db.add(order)
    commit_or_bad_request(db, "No se pudo registrar la orden, intenta de nuevo", "ORDER_CONFLICT")
    db.refresh(order)

    invalidator.order_created()

    total = sum((Decimal(item.unit_price) * item.quantity for item in order.items), Decimal("0"))
    logger.info(f"Orden registrada: {order.order_code} ({len(order.items)} item(s), total {total:.2f})")

    return {
        "success": True,
        "status_code": 201,
        "message": "Orden registrada exitosamente",
        "data": {
            "id": order.id,
            "order_code": order.order_code,
            "total": f"{total:.2f}"
        }
    }


# ==================== ADMIN ====================

@router.get("/orders")
async def list_orders(
    reader: ReadThroughService = Depends(get_reader),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Listar todas las órdenes (solo administradores).
    """
    return Response(content=reader.all_orders(), media_type="application/json")


@router.get("/order/{order_id}")
async def get_order(
    order_id: str,
    reader: ReadThroughService = Depends(get_reader),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Detalle de una orden con sus items, productos e imágenes (solo administradores).
    """
    return Response(content=reader.order_by_id(order_id), media_type="application/json")


@router.patch("/order/{order_id}/status", dependencies=[Depends(order_limiter)])
async def update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Actualizar el estado de una orden (solo administradores).

    Transiciones válidas:
    - ordered → shipped | cancelled
    - shipped → delivered | cancelled
    - delivered y cancelled son finales
    """
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Orden no encontrada", "ORDER_NOT_FOUND")

    new_status = status_data.status
    if order.status == new_status:
        return {
            "success": True,
            "status_code": 200,
            "message": "La orden ya tiene ese estado",
            "data": format_order(order)
        }

    if new_status not in ORDER_STATUS_TRANSITIONS[order.status]:
        raise BadRequestError(
            f"No se puede cambiar el estado de '{order.status.value}' a '{new_status.value}'",
            "INVALID_STATUS_TRANSITION"
        )

    old_status = order.status
    order.status = new_status
    db.commit()
    db.refresh(order)

    invalidator.order_updated(order.id)
    logger.info(f"Orden {order.order_code}: {old_status.value} -> {new_status.value}")

    return {
        "success": True,
        "status_code": 200,
        "message": "Estado de la orden actualizado exitosamente",
        "data": format_order(order)
    }


@router.delete("/order/{order_id}", dependencies=[Depends(order_limiter)])
async def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Eliminar una orden y sus items (solo administradores).
    """
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Orden no encontrada", "ORDER_NOT_FOUND")

    order_code = order.order_code
    db.delete(order)
    db.commit()

    invalidator.order_deleted(order_id)
    logger.info(f"Orden eliminada: {order_code}")

    return {
        "success": True,
        "status_code": 200,
        "message": "Orden eliminada exitosamente",
        "data": {"id": order_id, "order_code": order_code}
    }
