from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Optional
import logging

from core.context import AppContext
from core.cookie_auth import clear_admin_cookie, set_admin_cookie
from core.dependencies import (
    get_context,
    get_current_admin_id,
    get_db,
    get_invalidator,
    get_reader,
    get_token_from_request,
    security,
)
from core.errors import UnauthorizedError
from core.invalidation_service import InvalidationService
from core.read_through import ReadThroughService, format_admin
from core.security import create_admin_token, decode_token, verify_passcode
from models.admin import AdminPasscode
from schemas.admin import AdminLogin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.post("/login")
async def login(
    login_data: AdminLogin,
    response: Response,
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
    invalidator: InvalidationService = Depends(get_invalidator)
):
    """
    Acceso al panel con código.

    Establece la cookie HttpOnly 'token' (7 días) y también devuelve el token
    para clientes que usan el header Authorization.
    """
    # Los códigos se guardan hasheados: hay que compararlos uno por uno
    admin = None
    for passcode in db.execute(select(AdminPasscode)).scalars():
        if verify_passcode(login_data.code, passcode.passcode_hash):
            admin = passcode
            break

    if not admin:
        logger.info("Intento de acceso con código inválido")
        raise UnauthorizedError("Código de acceso inválido", "INVALID_PASSCODE")

    token = create_admin_token(admin.id)
    set_admin_cookie(response, token, context.settings)
    invalidator.admin_session_changed(admin.id)
    logger.info(f"Acceso al panel: {admin.owner} ({admin.id})")

    return {
        "success": True,
        "status_code": 200,
        "message": "Acceso concedido",
        "data": {**format_admin(admin), "token": token}
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: AppContext = Depends(get_context),
    invalidator: InvalidationService = Depends(get_invalidator)
):
    """
    Cerrar sesión: borra la cookie. Funciona aunque el token ya haya expirado.
    """
    token = get_token_from_request(request, credentials)
    payload = decode_token(token) if token else None
    if payload and payload.get("sub"):
        invalidator.admin_session_changed(payload["sub"])

    clear_admin_cookie(response, context.settings)

    return {
        "success": True,
        "status_code": 200,
        "message": "Sesión cerrada exitosamente"
    }


@router.get("/admin")
async def get_admin(
    admin_id: str = Depends(get_current_admin_id),
    reader: ReadThroughService = Depends(get_reader)
):
    """
    Datos del administrador de la sesión actual.
    """
    return Response(content=reader.admin_by_id(admin_id), media_type="application/json")
