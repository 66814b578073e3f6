"""
Schemas del login de administrador.
"""
from pydantic import BaseModel, Field


class AdminLogin(BaseModel):
    """Código de acceso del panel"""
    code: str = Field(..., min_length=1, max_length=128, description="Código de acceso")
