"""
Servicio de cache sobre Redis.

Redis es solo una proyección de PostgreSQL: cualquier fallo de Redis
(caído, timeout) se registra y se trata como cache miss o como no-op,
nunca como error para el usuario.
"""
import enum
import logging
from typing import Iterable, Optional

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def create_redis_client(redis_url: str, socket_timeout: float = 2.0) -> redis.Redis:
    """Crear cliente de Redis (la conexión se abre en el primer comando)"""
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


class CacheStatus(str, enum.Enum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


class CacheResult:
    """Resultado de una lectura: HIT con payload, MISS o UNAVAILABLE"""

    __slots__ = ("status", "payload")

    def __init__(self, status: CacheStatus, payload: Optional[str] = None):
        self.status = status
        self.payload = payload

    @classmethod
    def hit(cls, payload: str) -> "CacheResult":
        return cls(CacheStatus.HIT, payload)

    @classmethod
    def miss(cls) -> "CacheResult":
        return cls(CacheStatus.MISS)

    @classmethod
    def unavailable(cls) -> "CacheResult":
        return cls(CacheStatus.UNAVAILABLE)

    @property
    def is_hit(self) -> bool:
        return self.status == CacheStatus.HIT

    def __repr__(self):
        return f"<CacheResult({self.status.value})>"


class CacheService:
    """Servicio para cachear respuestas en Redis"""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> CacheResult:
        """Leer una respuesta cacheada"""
        try:
            data = self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache no disponible al leer {key}: {e}")
            return CacheResult.unavailable()
        if data is None:
            return CacheResult.miss()
        return CacheResult.hit(data)

    def set(self, key: str, value: str, expire_seconds: int) -> bool:
        """Guardar una respuesta con TTL"""
        try:
            self.client.setex(key, expire_seconds, value)
            return True
        except RedisError as e:
            logger.warning(f"No se pudo cachear {key}: {e}")
            return False

    def delete(self, *keys: str) -> int:
        """Borrar claves; retorna cuántas existían"""
        keys = [key for key in keys if key]
        if not keys:
            return 0
        try:
            return self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"No se pudieron invalidar {keys}: {e}")
            return 0

    def keys(self, pattern: str) -> Optional[list]:
        """
        Listar claves por patrón usando SCAN (no bloquea Redis como KEYS).
        Retorna None si Redis no está disponible.
        """
        try:
            return list(self.client.scan_iter(match=pattern, count=100))
        except RedisError as e:
            logger.warning(f"No se pudo escanear {pattern}: {e}")
            return None

    def invalidate_pattern(self, pattern: str) -> int:
        """Invalidar cache por patrón"""
        keys = self.keys(pattern)
        if not keys:
            return 0
        return self.delete(*keys)

    def delete_many(self, keys: Iterable[str]) -> int:
        return self.delete(*set(keys))
