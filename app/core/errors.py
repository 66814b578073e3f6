"""
Errores de aplicación con su código HTTP.

Se lanzan donde se detecta el problema y los convierte a la respuesta
estándar ({"success": false, "message": ...}) el handler registrado en main.py.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    error = "SERVER_ERROR"

    def __init__(self, message: str, error: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "success": False,
            "status_code": self.status_code,
            "message": self.message,
            "error": self.error
        }


class BadRequestError(AppError):
    """Entrada inválida, slug duplicado o fallo recuperable del storage"""
    status_code = 400
    error = "BAD_REQUEST"


class UnauthorizedError(AppError):
    status_code = 401
    error = "UNAUTHORIZED"


class NotFoundError(AppError):
    status_code = 404
    error = "NOT_FOUND"


class RateLimitedError(AppError):
    status_code = 429
    error = "RATE_LIMITED"


class ServerError(AppError):
    status_code = 500
    error = "SERVER_ERROR"
