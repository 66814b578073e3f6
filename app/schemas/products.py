"""
Schemas para categorías.

Los productos se crean y editan con multipart/form-data (archivos de imagen),
así que sus campos se validan en la ruta con Form(...), no aquí.
"""
from pydantic import BaseModel, Field, validator


# ==================== CATEGORY SCHEMAS ====================

class CategoryCreate(BaseModel):
    """Schema para crear categoría (el slug se deriva del nombre)"""
    name: str = Field(..., min_length=2, max_length=100, description="Nombre de la categoría")

    @validator('name')
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('El nombre debe tener al menos 2 caracteres')
        return v


class CategoryUpdate(CategoryCreate):
    """Schema para renombrar categoría"""
    pass
