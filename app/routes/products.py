from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import List, Optional
from decimal import Decimal
import logging

from core.database import commit_or_bad_request, generate_unique_code
from core.dependencies import get_current_admin, get_db, get_invalidator, get_reader, get_storage
from core.errors import AppError, BadRequestError, NotFoundError
from core.identifiers import slugify
from core.invalidation_service import InvalidationService
from core.rate_limiter import RateLimiter
from core.read_through import ReadThroughService, format_products
from core.storage import StorageService, StoredImage
from models.admin import AdminPasscode
from models.products import Category, Product, ProductImage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])

product_limiter = RateLimiter("product", lambda s: s.PRODUCT_RATE_LIMIT)


# ==================== HELPERS ====================

def _product_slug(db: Session, name: str, exclude_id: Optional[str] = None) -> str:
    slug = slugify(name)
    if not slug:
        raise BadRequestError("El nombre debe contener letras o números", "INVALID_NAME")

    query = select(Product.id).where(Product.slug == slug)
    if exclude_id:
        query = query.where(Product.id != exclude_id)
    if db.execute(query).first():
        raise BadRequestError(f'Ya existe un producto con el nombre "{name}"', "DUPLICATE_SLUG")
    return slug


def _resolve_category_id(db: Session, category_id: Optional[str]) -> Optional[str]:
    """Ausente -> sin categoría. Un id que no existe es un error del cliente."""
    if not category_id:
        return None
    if not db.get(Category, category_id):
        raise BadRequestError("La categoría no existe", "CATEGORY_NOT_FOUND")
    return category_id


async def _upload_files(storage: StorageService, files: List[UploadFile]) -> List[StoredImage]:
    """Subir todas las imágenes; si una falla se borran las ya subidas"""
    uploaded: List[StoredImage] = []
    try:
        for file in files:
            uploaded.append(await storage.upload(await file.read()))
    except AppError:
        await _discard_uploads(storage, uploaded)
        raise
    return uploaded


async def _discard_uploads(storage: StorageService, uploaded: List[StoredImage]) -> None:
    """Borrar archivos que no llegaron a la BD (el commit falló)"""
    await _delete_stored(storage, [image.public_id for image in uploaded])


async def _delete_stored(storage: StorageService, public_ids: List[str]) -> None:
    """Borrar archivos del storage sin abortar el request; un fallo deja un huérfano en el log"""
    for public_id in public_ids:
        try:
            await storage.delete(public_id)
        except AppError as e:
            logger.warning(f"Imagen huérfana en storage {public_id}: {e.message}")


def _product_response(db: Session, product: Product, message: str, status_code: int = 200) -> dict:
    return {
        "success": True,
        "status_code": status_code,
        "message": message,
        "data": format_products(db, [product])[0]
    }


# ==================== LECTURAS (CACHE) ====================

@router.get("/products")
async def list_products(reader: ReadThroughService = Depends(get_reader)):
    """
    Listar todos los productos (más recientes primero) con imágenes y categoría.
    """
    return Response(content=reader.all_products(), media_type="application/json")


@router.get("/product/{slug}")
async def get_product(slug: str, reader: ReadThroughService = Depends(get_reader)):
    """
    Obtener un producto por su slug.
    """
    return Response(content=reader.product_by_slug(slug), media_type="application/json")


# ==================== ESCRITURAS (ADMIN) ====================

@router.post("/product", status_code=201, dependencies=[Depends(product_limiter)])
async def create_product(
    name: str = Form(..., min_length=2, max_length=255),
    description: str = Form(..., min_length=1),
    price: Decimal = Form(..., gt=0, max_digits=10, decimal_places=2),
    unit: int = Form(..., ge=1),
    category_id: Optional[str] = Form(None),
    files: List[UploadFile] = File(..., description="Imágenes del producto (al menos una)"),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Crear un producto con sus imágenes (solo administradores).

    El producto y sus imágenes se guardan en un solo commit. Si el commit
    falla, los archivos ya subidos se borran del storage.
    """
    name = name.strip()
    if not files:
        raise BadRequestError("Se requiere al menos una imagen", "IMAGES_REQUIRED")

    slug = _product_slug(db, name)
    category_id = _resolve_category_id(db, category_id)

    uploaded = await _upload_files(storage, files)

    product = Product(
        code=generate_unique_code(db, Product.code, "prod"),
        name=name,
        slug=slug,
        description=description,
        price=price,
        unit=unit,
        category_id=category_id
    )
    product.images = [
        ProductImage(image_url=image.url, public_id=image.public_id) for image in uploaded
    ]
    db.add(product)

    try:
        commit_or_bad_request(db, f'Ya existe un producto con el nombre "{name}"')
    except Exception:
        await _discard_uploads(storage, uploaded)
        raise
    db.refresh(product)

    invalidator.product_created(product.slug, product.category_id)
    logger.info(f"Producto creado: {product.code} {product.slug} ({len(uploaded)} imagen(es))")

    return _product_response(db, product, "Producto creado exitosamente", 201)


@router.patch("/product/{slug}", dependencies=[Depends(product_limiter)])
async def update_product(
    slug: str,
    name: Optional[str] = Form(None, min_length=2, max_length=255),
    description: Optional[str] = Form(None, min_length=1),
    price: Optional[Decimal] = Form(None, gt=0, max_digits=10, decimal_places=2),
    unit: Optional[int] = Form(None, ge=1),
    category_id: Optional[str] = Form(None),
    clear_category: bool = Form(False, description="Dejar el producto sin categoría"),
    deleted_image_ids: Optional[List[str]] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Editar un producto (solo administradores). Solo se actualizan los campos enviados.

    - **deleted_image_ids**: imágenes a borrar; los archivos se borran del
      storage solo después del commit
    - **files**: imágenes nuevas
    - **clear_category**: quitar la categoría (un campo vacío se ignora)
    - Cambiar el nombre recalcula el slug
    """
    product = db.execute(select(Product).where(Product.slug == slug)).scalar_one_or_none()
    if not product:
        raise NotFoundError("Producto no encontrado", "PRODUCT_NOT_FOUND")

    old_slug = product.slug
    old_category_id = product.category_id

    new_slug = old_slug
    if name is not None:
        name = name.strip()
        if name != product.name:
            new_slug = _product_slug(db, name, exclude_id=product.id)

    new_category_id = old_category_id
    if clear_category:
        new_category_id = None
    elif category_id is not None:
        new_category_id = _resolve_category_id(db, category_id)

    # Solo las imágenes que pertenecen a este producto
    images_to_delete = db.execute(
        select(ProductImage).where(
            ProductImage.product_id == product.id,
            ProductImage.id.in_(deleted_image_ids)
        )
    ).scalars().all() if deleted_image_ids else []
    deleted_public_ids = [image.public_id for image in images_to_delete]

    order_ids = invalidator.orders_containing_product(product.id)

    uploaded = await _upload_files(storage, files) if files else []

    for image in images_to_delete:
        db.delete(image)
    for image in uploaded:
        db.add(ProductImage(product_id=product.id, image_url=image.url, public_id=image.public_id))

    if name is not None:
        product.name = name
        product.slug = new_slug
    if description is not None:
        product.description = description
    if price is not None:
        product.price = price
    if unit is not None:
        product.unit = unit
    product.category_id = new_category_id

    try:
        commit_or_bad_request(db, f'Ya existe un producto con el nombre "{product.name}"')
    except Exception:
        await _discard_uploads(storage, uploaded)
        raise
    db.refresh(product)

    invalidator.product_updated(old_slug, new_slug, old_category_id, new_category_id, order_ids)
    await _delete_stored(storage, deleted_public_ids)

    response = _product_response(db, product, "Producto actualizado exitosamente")
    uploaded_ids = {image.public_id for image in uploaded}
    response["data"]["new_images"] = [
        image for image in response["data"]["images"] if image["public_id"] in uploaded_ids
    ]
    return response


@router.delete("/product/{product_id}", dependencies=[Depends(product_limiter)])
async def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
    invalidator: InvalidationService = Depends(get_invalidator),
    admin: AdminPasscode = Depends(get_current_admin)
):
    """
    Eliminar un producto (solo administradores).

    Primero se borran sus imágenes del storage; después el producto, y la BD
    elimina en cascada sus imágenes y los items de órdenes que lo contienen.
    """
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Producto no encontrado", "PRODUCT_NOT_FOUND")

    slug = product.slug
    category_id = product.category_id
    order_ids = invalidator.orders_containing_product(product.id)

    images = db.execute(
        select(ProductImage).where(ProductImage.product_id == product.id)
    ).scalars().all()
    for image in images:
        await storage.delete(image.public_id)

    db.delete(product)
    db.commit()

    invalidator.product_deleted(slug, category_id, order_ids)
    logger.info(f"Producto eliminado: {slug} ({len(images)} imagen(es), {len(order_ids)} orden(es) afectada(s))")

    return {
        "success": True,
        "status_code": 200,
        "message": "Producto eliminado exitosamente",
        "data": {"id": product_id, "slug": slug}
    }
