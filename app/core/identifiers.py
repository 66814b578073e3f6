"""
Generación de identificadores: ids internos, códigos visibles y slugs.
"""
import re
import secrets
import unicodedata
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """ID interno (32 caracteres hex)"""
    return uuid.uuid4().hex


def generate_display_code(prefix: str) -> str:
    """
    Código público legible, por ejemplo PROD-0934 u ORDER-4410.
    La unicidad la garantiza la restricción UNIQUE de la tabla.
    """
    return f"{prefix.upper()}-{secrets.randbelow(10000):04d}"


def slugify(value: str) -> str:
    """
    Convertir un nombre en un slug URL-friendly.

    "Blue Sapphires" -> "blue-sapphires"
    "Café & Ópalo"   -> "cafe-opalo"
    """
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value.lower()).strip()
    value = re.sub(r"[\s_-]+", "-", value)
    return value.strip("-")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
