"""
Lecturas con cache read-through.

Flujo de cada endpoint de lectura:
1. Calcular la clave (core.cache_keys) y consultar Redis.
2. HIT: devolver el cuerpo cacheado tal cual (es la respuesta ya servida).
3. MISS / Redis caído: consultar PostgreSQL, armar la respuesta completa
   (joins en la aplicación, siempre con consultas IN por lote), guardarla
   con TTL y devolver exactamente los mismos bytes.

Un "no encontrado" lanza NotFoundError y NO se cachea.
"""
import json
import logging
import math
from datetime import datetime
from decimal import Decimal
import enum
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core import cache_keys
from core.config import Settings
from core.errors import NotFoundError
from core.redis_service import CacheService
from models.admin import AdminPasscode
from models.order import Order, OrderItem
from models.products import Category, Product, ProductImage

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"Tipo no serializable: {type(value).__name__}")


def dump_payload(payload: dict) -> str:
    return json.dumps(payload, default=_json_default, ensure_ascii=False)


def read_through(cache: CacheService, key: str, loader: Callable[[], dict], ttl: int) -> str:
    """
    Retorna el cuerpo JSON (str) de la respuesta, desde cache o recién armado.
    """
    cached = cache.get(key)
    if cached.is_hit:
        logger.debug(f"Cache hit: {key}")
        return cached.payload

    payload = loader()
    body = dump_payload(payload)
    cache.set(key, body, ttl)
    return body


# ==================== FORMATEO ====================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def format_category(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "created_at": _iso(category.created_at)
    }


def format_category_summary(category: Optional[Category]) -> Optional[dict]:
    if category is None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


def format_image(image: ProductImage) -> dict:
    return {
        "id": image.id,
        "product_id": image.product_id,
        "image_url": image.image_url,
        "public_id": image.public_id,
        "created_at": _iso(image.created_at)
    }


def format_product(
    product: Product,
    images: Iterable[ProductImage] = (),
    category: Optional[Category] = None
) -> dict:
    return {
        "id": product.id,
        "code": product.code,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "price": f"{Decimal(product.price):.2f}",
        "unit": product.unit,
        "category_id": product.category_id,
        "category": format_category_summary(category),
        "images": [format_image(image) for image in images],
        "created_at": _iso(product.created_at),
        "updated_at": _iso(product.updated_at)
    }


def format_order(order: Order) -> dict:
    return {
        "id": order.id,
        "order_code": order.order_code,
        "name": order.name,
        "address": order.address,
        "telephone": order.telephone,
        "email": order.email,
        "note": order.note,
        "delivery_method": order.delivery_method.value,
        "status": order.status.value,
        "created_at": _iso(order.created_at)
    }


def format_order_item(item: OrderItem, product: Optional[dict]) -> dict:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "unit_price": f"{Decimal(item.unit_price):.2f}",
        "subtotal": f"{Decimal(item.unit_price) * item.quantity:.2f}",
        "product": product
    }


def format_admin(admin: AdminPasscode) -> dict:
    # Nunca exponer el hash del código
    return {"id": admin.id, "owner": admin.owner}


# ==================== CONSULTAS POR LOTE ====================

def images_by_product(db: Session, product_ids: List[str]) -> Dict[str, List[ProductImage]]:
    """Imágenes de varios productos en una sola consulta"""
    grouped: Dict[str, List[ProductImage]] = {product_id: [] for product_id in product_ids}
    if not product_ids:
        return grouped
    images = db.execute(
        select(ProductImage)
        .where(ProductImage.product_id.in_(product_ids))
        .order_by(ProductImage.created_at.asc())
    ).scalars().all()
    for image in images:
        grouped.setdefault(image.product_id, []).append(image)
    return grouped


def categories_by_id(db: Session, category_ids: Iterable[Optional[str]]) -> Dict[str, Category]:
    ids = {category_id for category_id in category_ids if category_id}
    if not ids:
        return {}
    categories = db.execute(select(Category).where(Category.id.in_(ids))).scalars().all()
    return {category.id: category for category in categories}


def format_products(db: Session, products: List[Product]) -> List[dict]:
    """Productos con sus imágenes y categoría (2 consultas extra en total, no por fila)"""
    product_ids = [product.id for product in products]
    images = images_by_product(db, product_ids)
    categories = categories_by_id(db, (product.category_id for product in products))
    return [
        format_product(product, images.get(product.id, []), categories.get(product.category_id))
        for product in products
    ]


# ==================== ACCESORES ====================

class ReadThroughService:
    """Endpoints de lectura cacheados"""

    def __init__(self, db: Session, cache: CacheService, settings: Settings):
        self.db = db
        self.cache = cache
        self.settings = settings

    @property
    def ttl(self) -> int:
        return self.settings.CACHE_TTL_SECONDS

    # ---------- Categorías ----------

    def all_categories(self) -> str:
        def load() -> dict:
            categories = self.db.execute(
                select(Category).order_by(Category.created_at.asc())
            ).scalars().all()
            return {
                "success": True,
                "status_code": 200,
                "message": "Categorías obtenidas exitosamente",
                "data": [format_category(category) for category in categories]
            }

        return read_through(self.cache, cache_keys.all_categories_key(), load, self.ttl)

    def category_page(self, slug: str, page=None, limit=None) -> str:
        page, limit = cache_keys.clamp_pagination(
            page, limit, self.settings.CATEGORY_PAGE_LIMIT, self.settings.MAX_PAGE_LIMIT
        )
        key = cache_keys.category_page_key(
            slug, page, limit, self.settings.CATEGORY_PAGE_LIMIT, self.settings.MAX_PAGE_LIMIT
        )

        def load() -> dict:
            if slug == self.settings.ALL_PRODUCTS_SLUG:
                return self._all_products_page(page, limit)
            return self._category_products_page(slug, page, limit)

        return read_through(self.cache, key, load, self.ttl)

    def _category_products_page(self, slug: str, page: int, limit: int) -> dict:
        category = self.db.execute(
            select(Category).where(Category.slug == slug)
        ).scalar_one_or_none()
        if not category:
            raise NotFoundError("Categoría no encontrada", "CATEGORY_NOT_FOUND")

        total = self.db.execute(
            select(func.count()).select_from(Product).where(Product.category_id == category.id)
        ).scalar_one()
        products = self.db.execute(
            select(Product)
            .where(Product.category_id == category.id)
            .order_by(Product.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars().all()

        images = images_by_product(self.db, [product.id for product in products])
        return self._page_payload(
            "Productos de la categoría obtenidos exitosamente",
            format_category_summary(category),
            [format_product(product, images.get(product.id, []), category) for product in products],
            total, page, limit
        )

    def _all_products_page(self, page: int, limit: int) -> dict:
        """Pseudo-categoría: todos los productos, sin consultar la tabla de categorías"""
        total = self.db.execute(select(func.count()).select_from(Product)).scalar_one()
        products = self.db.execute(
            select(Product)
            .order_by(Product.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars().all()

        return self._page_payload(
            "Todos los productos obtenidos exitosamente",
            {"id": None, "name": "All Products", "slug": self.settings.ALL_PRODUCTS_SLUG},
            format_products(self.db, products),
            total, page, limit
        )

    @staticmethod
    def _page_payload(message: str, category: dict, products: List[dict], total: int, page: int, limit: int) -> dict:
        return {
            "success": True,
            "status_code": 200,
            "message": message,
            "data": {
                "category": category,
                "products": products
            },
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit) if total else 0
        }

    # ---------- Productos ----------

    def all_products(self) -> str:
        def load() -> dict:
            products = self.db.execute(
                select(Product).order_by(Product.created_at.desc())
            ).scalars().all()
            return {
                "success": True,
                "status_code": 200,
                "message": "Productos obtenidos exitosamente",
                "data": format_products(self.db, products)
            }

        return read_through(self.cache, cache_keys.all_products_key(), load, self.ttl)

    def product_by_slug(self, slug: str) -> str:
        def load() -> dict:
            product = self.db.execute(
                select(Product).where(Product.slug == slug)
            ).scalar_one_or_none()
            if not product:
                raise NotFoundError("Producto no encontrado", "PRODUCT_NOT_FOUND")
            return {
                "success": True,
                "status_code": 200,
                "message": "Producto obtenido exitosamente",
                "data": format_products(self.db, [product])[0]
            }

        return read_through(self.cache, cache_keys.product_key(slug), load, self.ttl)

    # ---------- Órdenes ----------

    def all_orders(self) -> str:
        def load() -> dict:
            orders = self.db.execute(
                select(Order).order_by(Order.created_at.desc())
            ).scalars().all()
            totals = {
                row.order_id: row
                for row in self.db.execute(
                    select(
                        OrderItem.order_id,
                        func.count(OrderItem.id).label("items_count"),
                        func.sum(OrderItem.unit_price * OrderItem.quantity).label("total")
                    ).group_by(OrderItem.order_id)
                )
            }
            data = []
            for order in orders:
                order_data = format_order(order)
                summary = totals.get(order.id)
                order_data["items_count"] = summary.items_count if summary else 0
                order_data["total"] = f"{Decimal(summary.total or 0):.2f}" if summary else "0.00"
                data.append(order_data)
            return {
                "success": True,
                "status_code": 200,
                "message": "Órdenes obtenidas exitosamente",
                "data": data
            }

        return read_through(self.cache, cache_keys.all_orders_key(), load, self.ttl)

    def order_by_id(self, order_id: str) -> str:
        def load() -> dict:
            order = self.db.get(Order, order_id)
            if not order:
                raise NotFoundError("Orden no encontrada", "ORDER_NOT_FOUND")

            items = self.db.execute(
                select(OrderItem).where(OrderItem.order_id == order.id)
            ).scalars().all()
            product_ids = list({item.product_id for item in items})
            products = self.db.execute(
                select(Product).where(Product.id.in_(product_ids))
            ).scalars().all() if product_ids else []
            product_map = {payload["id"]: payload for payload in format_products(self.db, products)}

            order_data = format_order(order)
            order_data["items"] = [format_order_item(item, product_map.get(item.product_id)) for item in items]
            order_data["total"] = f"{sum((Decimal(item.unit_price) * item.quantity for item in items), Decimal('0')):.2f}"
            return {
                "success": True,
                "status_code": 200,
                "message": "Orden obtenida exitosamente",
                "data": order_data
            }

        return read_through(self.cache, cache_keys.order_key(order_id), load, self.ttl)

    # ---------- Admin ----------

    def admin_by_id(self, admin_id: str) -> str:
        def load() -> dict:
            admin = self.db.get(AdminPasscode, admin_id)
            if not admin:
                raise NotFoundError("Administrador no encontrado", "ADMIN_NOT_FOUND")
            return {
                "success": True,
                "status_code": 200,
                "message": "Datos del administrador obtenidos exitosamente",
                "data": format_admin(admin)
            }

        return read_through(
            self.cache, cache_keys.admin_key(admin_id), load, self.settings.ADMIN_CACHE_TTL_SECONDS
        )
