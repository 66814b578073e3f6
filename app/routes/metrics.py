from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from decimal import Decimal

from core.dependencies import get_current_admin, get_db
from core.rate_limiter import RateLimiter
from models.admin import AdminPasscode
from models.order import Order, OrderItem, OrderStatus
from models.products import Product

router = APIRouter(tags=["metrics"])

metrics_limiter = RateLimiter("metrics", lambda s: s.METRICS_RATE_LIMIT)


@router.get("/metrics", dependencies=[Depends(metrics_limiter)])
async def get_metrics(
    db: Session = Depends(get_db),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Totales del panel (no se cachean).

    - **pendingOrders**: órdenes en estado 'ordered'
    - **totalSales**: suma de unit_price * quantity de todos los items
    """
    total_products = db.execute(select(func.count()).select_from(Product)).scalar_one()
    total_orders = db.execute(select(func.count()).select_from(Order)).scalar_one()
    pending_orders = db.execute(
        select(func.count()).select_from(Order).where(Order.status == OrderStatus.ORDERED)
    ).scalar_one()
    total_sales = db.execute(
        select(func.sum(OrderItem.unit_price * OrderItem.quantity))
    ).scalar_one()

    return {
        "success": True,
        "status_code": 200,
        "message": "Métricas obtenidas exitosamente",
        "data": {
            "totalProducts": total_products,
            "totalOrders": total_orders,
            "pendingOrders": pending_orders,
            "totalSales": f"{Decimal(total_sales or 0):.2f}"
        }
    }
