"""
Utilidades para seguridad: códigos de acceso y JWT del panel de admin
"""
import bcrypt
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from core.config import settings


# ==================== PASSCODE HASHING ====================

def hash_passcode(passcode: str) -> str:
    """
    Hash del código de acceso usando bcrypt.
    Genera un hash de 60 caracteres.
    """
    return bcrypt.hashpw(passcode.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_passcode(plain_passcode: str, hashed_passcode: str) -> bool:
    """
    Verificar si un código coincide con su hash.
    """
    try:
        return bcrypt.checkpw(plain_passcode.encode('utf-8'), hashed_passcode.encode('utf-8'))
    except ValueError:
        # Hash mal formado en la BD
        return False


# ==================== JWT TOKEN MANAGEMENT ====================

def create_admin_token(admin_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Crear el token JWT de sesión de un administrador.

    Args:
        admin_id: ID del código de acceso (se guarda en "sub")
        expires_delta: Tiempo de expiración personalizado (opcional)

    Returns:
        str: Token JWT codificado
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.ADMIN_TOKEN_EXPIRE_DAYS))

    to_encode = {
        "sub": admin_id,
        "exp": expire,
        "iat": now,
        "type": "admin",
        "jti": str(uuid.uuid4())
    }

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decodificar y validar un token JWT.

    Returns:
        Dict con el payload del token o None si es inválido o expiró
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
