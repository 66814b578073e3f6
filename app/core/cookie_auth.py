"""
Cookie HttpOnly de la sesión de administrador.

- HttpOnly: JavaScript no puede acceder a la cookie
- Secure: Solo se envía por HTTPS (fuera de development)
- SameSite: Protección contra CSRF
"""
import os
from fastapi import Response
from core.config import Settings


COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN", None)


def get_cookie_settings(settings: Settings) -> dict:
    """
    Obtener configuración de la cookie según el entorno.
    """
    is_production = settings.ENV != "development"
    return {
        "httponly": True,
        "secure": is_production,
        "samesite": "lax",
        "max_age": settings.ADMIN_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        "path": "/",
        "domain": COOKIE_DOMAIN if is_production else None,
    }


def set_admin_cookie(response: Response, token: str, settings: Settings) -> None:
    """
    Establecer la cookie de sesión del administrador.

    Args:
        response: Objeto Response de FastAPI
        token: JWT de admin
        settings: Configuración activa
    """
    response.set_cookie(
        key=settings.ADMIN_COOKIE_NAME,
        value=token,
        **get_cookie_settings(settings)
    )


def clear_admin_cookie(response: Response, settings: Settings) -> None:
    """
    Eliminar la cookie de sesión del administrador.
    """
    is_production = settings.ENV != "development"
    response.delete_cookie(
        key=settings.ADMIN_COOKIE_NAME,
        path="/",
        domain=COOKIE_DOMAIN if is_production else None,
    )
