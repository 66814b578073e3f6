from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Optional
import logging

from core.database import commit_or_bad_request
from core.dependencies import get_current_admin, get_db, get_invalidator, get_reader
from core.errors import BadRequestError, NotFoundError
from core.identifiers import slugify
from core.invalidation_service import InvalidationService
from core.rate_limiter import RateLimiter
from core.read_through import ReadThroughService, format_category
from models.admin import AdminPasscode
from models.products import Category
from schemas.products import CategoryCreate, CategoryUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["categories"])

category_limiter = RateLimiter("category", lambda s: s.CATEGORY_RATE_LIMIT)


def _category_slug(db: Session, name: str, reserved_slug: str, exclude_id: Optional[str] = None) -> str:
    """Derivar el slug y verificar que esté libre"""
    slug = slugify(name)
    if not slug:
        raise BadRequestError("El nombre debe contener letras o números", "INVALID_NAME")
    if slug == reserved_slug:
        raise BadRequestError(f'El slug "{slug}" está reservado', "RESERVED_SLUG")

    query = select(Category.id).where(Category.slug == slug)
    if exclude_id:
        query = query.where(Category.id != exclude_id)
    if db.execute(query).first():
        raise BadRequestError(f'Ya existe una categoría con el slug "{slug}"', "DUPLICATE_SLUG")
    return slug


# ==================== LECTURAS (CACHE) ====================

@router.get("/categories")
async def list_categories(reader: ReadThroughService = Depends(get_reader)):
    """
    Listar todas las categorías.
    """
    return Response(content=reader.all_categories(), media_type="application/json")


@router.get("/category/{slug}")
async def get_category_products(
    slug: str,
    page: Optional[str] = Query(None, description="Número de página"),
    limit: Optional[str] = Query(None, description="Productos por página"),
    reader: ReadThroughService = Depends(get_reader)
):
    """
    Productos de una categoría, paginados.

    El slug reservado "all" lista todos los productos sin importar su categoría.
    Valores inválidos de page/limit se normalizan (page=1, limit por defecto).
    """
    return Response(content=reader.category_page(slug, page, limit), media_type="application/json")


# ==================== ESCRITURAS (ADMIN) ====================

@router.post("/category", status_code=201, dependencies=[Depends(category_limiter)])
async def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Crear una nueva categoría (solo administradores).
    """
    slug = _category_slug(db, category_data.name, invalidator.all_products_slug)

    new_category = Category(name=category_data.name, slug=slug)
    db.add(new_category)
    commit_or_bad_request(db, f'Ya existe una categoría con el slug "{slug}"')
    db.refresh(new_category)

    invalidator.category_created()
    logger.info(f"Categoría creada: {slug} ({new_category.id})")

    return {
        "success": True,
        "status_code": 201,
        "message": "Categoría creada exitosamente",
        "data": format_category(new_category)
    }


@router.patch("/category/{category_id}", dependencies=[Depends(category_limiter)])
async def update_category(
    category_id: str,
    category_data: CategoryUpdate,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Renombrar una categoría (solo administradores). El slug se recalcula.
    """
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Categoría no encontrada", "CATEGORY_NOT_FOUND")

    old_slug = category.slug
    new_slug = _category_slug(
        db, category_data.name, invalidator.all_products_slug, exclude_id=category.id
    )
    product_slugs = invalidator.products_in_category(category.id)
    order_ids = invalidator.orders_in_category(category.id)

    category.name = category_data.name
    category.slug = new_slug
    commit_or_bad_request(db, f'Ya existe una categoría con el slug "{new_slug}"')
    db.refresh(category)

    invalidator.category_renamed(old_slug, new_slug, product_slugs, order_ids)

    return {
        "success": True,
        "status_code": 200,
        "message": "Categoría actualizada exitosamente",
        "data": format_category(category)
    }


@router.delete("/category/{category_id}", dependencies=[Depends(category_limiter)])
async def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Eliminar una categoría (solo administradores).

    Sus productos NO se eliminan: quedan sin categoría (category_id = NULL).
    """
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Categoría no encontrada", "CATEGORY_NOT_FOUND")

    slug = category.slug
    product_slugs = invalidator.products_in_category(category.id)
    order_ids = invalidator.orders_in_category(category.id)

    db.delete(category)
    db.commit()

    invalidator.category_deleted(slug, product_slugs, order_ids)
    logger.info(f"Categoría eliminada: {slug} ({len(product_slugs)} producto(s) sin categoría)")

    return {
        "success": True,
        "status_code": 200,
        "message": "Categoría eliminada exitosamente",
        "data": {"id": category_id, "slug": slug}
    }
