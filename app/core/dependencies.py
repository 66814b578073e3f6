"""
Dependencias de FastAPI.

Recursos compartidos (BD, Redis, storage) salen del AppContext guardado en
app.state durante el startup. La autenticación de admin acepta:
1. Cookie 'token' (la que establece /login)
2. Header 'Authorization: Bearer <token>'
"""
from typing import Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.context import AppContext
from core.errors import UnauthorizedError
from core.invalidation_service import InvalidationService
from core.read_through import ReadThroughService
from core.security import decode_token
from core.storage import StorageService
from models.admin import AdminPasscode


security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_db(context: AppContext = Depends(get_context)) -> Generator[Session, None, None]:
    db = context.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_storage(context: AppContext = Depends(get_context)) -> StorageService:
    return context.storage


def get_invalidator(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context)
) -> InvalidationService:
    return InvalidationService(context.cache, db, context.settings.ALL_PRODUCTS_SLUG)


def get_reader(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context)
) -> ReadThroughService:
    return ReadThroughService(db, context.cache, context.settings)


def get_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None
) -> Optional[str]:
    """Cookie primero, luego Bearer header"""
    token = request.cookies.get(request.app.state.context.settings.ADMIN_COOKIE_NAME)
    if not token and credentials:
        token = credentials.credentials
    return token


def get_current_admin_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    ID del administrador del token. No consulta la BD.
    """
    token = get_token_from_request(request, credentials)
    if not token:
        raise UnauthorizedError("Token de administrador requerido", "AUTHENTICATION_REQUIRED")

    payload = decode_token(token)
    if not payload or payload.get("type") != "admin" or not payload.get("sub"):
        raise UnauthorizedError("Token inválido o expirado", "INVALID_TOKEN")

    return payload["sub"]


def get_current_admin(
    admin_id: str = Depends(get_current_admin_id),
    db: Session = Depends(get_db)
) -> AdminPasscode:
    """
    Verificar que el token pertenece a un código de acceso que sigue existiendo.

    Uso:
        @router.post("/product")
        async def create_product(admin: AdminPasscode = Depends(get_current_admin)):
            ...
    """
    admin = db.get(AdminPasscode, admin_id)
    if not admin:
        raise UnauthorizedError("Administrador no encontrado", "ADMIN_NOT_FOUND")
    return admin
