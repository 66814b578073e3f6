"""
Esquema de claves de Redis para las respuestas cacheadas.

Todas las claves son funciones puras de sus argumentos. La paginación se
normaliza antes de construir la clave para que peticiones equivalentes
(page=0 y page=1, limit=500 y limit=100) compartan el mismo slot.
"""
from typing import Any, Optional, Tuple
from core.config import settings


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def clamp_pagination(
    page: Any = None,
    limit: Any = None,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None
) -> Tuple[int, int]:
    """
    Normalizar (page, limit).

    - page ausente, inválido o < 1 -> 1
    - limit ausente, inválido o < 1 -> default_limit
    - limit > max_limit -> max_limit
    """
    default_limit = default_limit or settings.CATEGORY_PAGE_LIMIT
    max_limit = max_limit or settings.MAX_PAGE_LIMIT

    page_number = _to_int(page)
    if page_number is None or page_number < 1:
        page_number = 1

    page_size = _to_int(limit)
    if page_size is None or page_size < 1:
        page_size = default_limit

    return page_number, min(page_size, max_limit)


def all_categories_key() -> str:
    return "categories:all"


def category_key(slug: str) -> str:
    """Listado completo (sin paginar) de una categoría"""
    return f"category:{slug}"


def category_page_key(
    slug: str,
    page: Any,
    limit: Any,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None
) -> str:
    page, limit = clamp_pagination(page, limit, default_limit, max_limit)
    return f"category:{slug}:page:{page}:limit:{limit}"


def category_prefix_pattern(slug: str) -> str:
    """Patrón para borrar todas las páginas de una categoría (solo SCAN, nunca get/set)"""
    return f"category:{slug}:page:*"


def all_products_key() -> str:
    return "products:all"


def product_key(slug: str) -> str:
    return f"product:{slug}"


def all_orders_key() -> str:
    return "orders:all"


def order_key(internal_id: str) -> str:
    return f"order:{internal_id}"


def admin_key(admin_id: str) -> str:
    return f"admin:{admin_id}"
