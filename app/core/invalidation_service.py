"""
Invalidación de cache después de cada escritura.

Regla general: ante la duda, borrar. Una clave borrada de más solo provoca
un cache miss (se reconstruye desde PostgreSQL); una clave vieja que
sobrevive es un bug.

Siempre se llama DESPUÉS del commit. Los fallos de Redis (y de la consulta
auxiliar id -> slug) se registran y se ignoran: la escritura ya está
confirmada y las entradas viejas expiran solas por TTL.

Carrera conocida y aceptada: un lector que leyó la BD antes del commit de
un escritor puede guardar su respuesta en cache DESPUÉS de que el escritor
invalidó. Esa entrada vieja dura como máximo CACHE_TTL_SECONDS.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core import cache_keys
from core.config import settings
from core.redis_service import CacheService
from models.order import OrderItem
from models.products import Category, Product

logger = logging.getLogger(__name__)


class InvalidationService:
    """Calcula y borra las claves afectadas por cada mutación"""

    def __init__(self, cache: CacheService, db: Session, all_products_slug: Optional[str] = None):
        self.cache = cache
        self.db = db
        self.all_products_slug = all_products_slug or settings.ALL_PRODUCTS_SLUG

    # ==================== CATEGORÍAS ====================

    def resolve_category_slug(self, category_id: Optional[str]) -> Optional[str]:
        """
        Resolver id -> slug. Una categoría inexistente (o borrada en paralelo)
        no es un error: simplemente no hay nada que invalidar.
        """
        if not category_id:
            return None
        try:
            return self.db.execute(
                select(Category.slug).where(Category.id == category_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"No se pudo resolver el slug de la categoría {category_id}: {e}")
            return None

    def invalidate_category_slug(self, slug: Optional[str]) -> int:
        """Borrar todas las páginas cacheadas de una categoría y su listado completo"""
        if not slug:
            return 0
        deleted = self.cache.invalidate_pattern(cache_keys.category_prefix_pattern(slug))
        deleted += self.cache.delete(cache_keys.category_key(slug))
        if deleted:
            logger.info(f"🧹 {deleted} clave(s) de cache invalidadas para la categoría {slug}")
        return deleted

    def invalidate_category(self, category_id: Optional[str]) -> int:
        return self.invalidate_category_slug(self.resolve_category_slug(category_id))

    def invalidate_all_products_listing(self) -> int:
        """Páginas de la pseudo-categoría con todos los productos"""
        return self.invalidate_category_slug(self.all_products_slug)

    def category_created(self) -> None:
        self.cache.delete(cache_keys.all_categories_key())

    def category_renamed(
        self,
        old_slug: str,
        new_slug: str,
        product_slugs: Iterable[str],
        order_ids: Iterable[str] = ()
    ) -> None:
        """
        Los productos embeben {name, slug} de su categoría: también quedan
        viejos, igual que el detalle de las órdenes que contienen esos productos.
        """
        self.cache.delete(cache_keys.all_categories_key(), cache_keys.all_products_key())
        self.invalidate_category_slug(old_slug)
        if new_slug != old_slug:
            self.invalidate_category_slug(new_slug)
        self._invalidate_product_slugs(product_slugs)
        self.invalidate_all_products_listing()
        self._invalidate_orders(order_ids)

    def category_deleted(self, slug: str, product_slugs: Iterable[str], order_ids: Iterable[str] = ()) -> None:
        """Los productos de la categoría siguen existiendo con category_id = NULL"""
        self.cache.delete(cache_keys.all_categories_key(), cache_keys.all_products_key())
        self.invalidate_category_slug(slug)
        self._invalidate_product_slugs(product_slugs)
        self.invalidate_all_products_listing()
        self._invalidate_orders(order_ids)

    # ==================== PRODUCTOS ====================

    def product_created(self, slug: str, category_id: Optional[str]) -> None:
        self.cache.delete(
            cache_keys.all_products_key(),
            cache_keys.product_key(slug),  # preventivo
            cache_keys.all_categories_key(),
        )
        self.invalidate_category(category_id)
        self.invalidate_all_products_listing()

    def product_updated(
        self,
        old_slug: str,
        new_slug: str,
        old_category_id: Optional[str],
        new_category_id: Optional[str],
        order_ids: Iterable[str] = ()
    ) -> None:
        """
        Si cambió la categoría se invalidan AMBAS: la vieja (el producto ya
        no debe aparecer ahí) y la nueva (debe aparecer).
        """
        keys = [
            cache_keys.all_products_key(),
            cache_keys.product_key(old_slug),
            cache_keys.all_categories_key(),
        ]
        if new_slug != old_slug:
            keys.append(cache_keys.product_key(new_slug))
        self.cache.delete(*keys)

        self.invalidate_category(old_category_id)
        if new_category_id != old_category_id:
            self.invalidate_category(new_category_id)
        self.invalidate_all_products_listing()
        self._invalidate_orders(order_ids)

    def product_deleted(self, slug: str, category_id: Optional[str], order_ids: Iterable[str] = ()) -> None:
        self.cache.delete(
            cache_keys.all_products_key(),
            cache_keys.product_key(slug),
            cache_keys.all_categories_key(),
        )
        self.invalidate_category(category_id)
        self.invalidate_all_products_listing()
        order_ids = list(order_ids)
        if order_ids:
            # El borrado cascadeó items: cambian los totales del listado de órdenes
            self.cache.delete(cache_keys.all_orders_key())
        self._invalidate_orders(order_ids)

    def orders_containing_product(self, product_id: str) -> list:
        """
        IDs de las órdenes que embeben este producto en su detalle cacheado.
        Debe llamarse ANTES de borrar el producto (el borrado cascadea los items).
        """
        try:
            return list(self.db.execute(
                select(OrderItem.order_id).where(OrderItem.product_id == product_id).distinct()
            ).scalars())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"No se pudieron obtener las órdenes del producto {product_id}: {e}")
            return []

    def products_in_category(self, category_id: str) -> list:
        """Slugs de los productos de una categoría (antes de renombrarla o borrarla)"""
        try:
            return list(self.db.execute(
                select(Product.slug).where(Product.category_id == category_id)
            ).scalars())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"No se pudieron obtener los productos de la categoría {category_id}: {e}")
            return []

    def orders_in_category(self, category_id: str) -> list:
        """IDs de las órdenes con algún producto de la categoría (antes de renombrarla o borrarla)"""
        try:
            return list(self.db.execute(
                select(OrderItem.order_id)
                .where(OrderItem.product_id.in_(
                    select(Product.id).where(Product.category_id == category_id)
                ))
                .distinct()
            ).scalars())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"No se pudieron obtener las órdenes de la categoría {category_id}: {e}")
            return []

    def _invalidate_product_slugs(self, slugs: Iterable[str]) -> None:
        self.cache.delete_many(cache_keys.product_key(slug) for slug in slugs)

    # ==================== ÓRDENES ====================

    def order_created(self) -> None:
        self.cache.delete(cache_keys.all_orders_key())

    def order_updated(self, order_id: str) -> None:
        self.cache.delete(cache_keys.all_orders_key(), cache_keys.order_key(order_id))

    def order_deleted(self, order_id: str) -> None:
        self.cache.delete(cache_keys.all_orders_key(), cache_keys.order_key(order_id))

    def _invalidate_orders(self, order_ids: Iterable[str]) -> None:
        self.cache.delete_many(cache_keys.order_key(order_id) for order_id in order_ids)

    # ==================== ADMIN ====================

    def admin_session_changed(self, admin_id: Optional[str]) -> None:
        """Login / logout"""
        if admin_id:
            self.cache.delete(cache_keys.admin_key(admin_id))
