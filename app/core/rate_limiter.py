"""
Rate limiting por IP con ventana fija sobre Redis.

Clave: "{prefijo}:{ip}:{ruta sin query}". El primer request de la ventana
crea el contador con EXPIRE; al superar el máximo se responde 429 sin
llegar al handler.

Si Redis no responde el limitador deja pasar el request (fail open): la
disponibilidad de la tienda es más importante que el límite.
"""
import logging

from fastapi import Depends, Request
from redis.exceptions import RedisError

from core.context import AppContext
from core.dependencies import get_context
from core.errors import RateLimitedError

logger = logging.getLogger(__name__)


def get_client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    if trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """
    Dependencia de FastAPI.

    Uso:
        product_limiter = RateLimiter("product", lambda s: s.PRODUCT_RATE_LIMIT)

        @router.post("/product", dependencies=[Depends(product_limiter)])
    """

    def __init__(self, prefix: str, max_requests):
        self.prefix = prefix
        # int fijo o función que lo lee de Settings
        self.max_requests = max_requests

    def _limit(self, context: AppContext) -> int:
        if callable(self.max_requests):
            return self.max_requests(context.settings)
        return self.max_requests

    def build_key(self, request: Request, context: AppContext) -> str:
        client_ip = get_client_ip(request, context.settings.TRUST_PROXY_HEADERS)
        return f"{self.prefix}:{client_ip}:{request.url.path}"

    def hit(self, key: str, context: AppContext) -> int:
        """
        Incrementar el contador de la ventana actual.

        Un contador sin TTL (ttl == -1, p. ej. porque falló el EXPIRE de un
        request anterior) recibe la ventana de nuevo; si no, nunca expiraría.
        """
        pipe = context.redis.pipeline(transaction=True)
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        if count == 1 or ttl == -1:
            context.redis.expire(key, context.settings.RATE_LIMIT_WINDOW_SECONDS)
        return count

    async def __call__(self, request: Request, context: AppContext = Depends(get_context)) -> None:
        key = self.build_key(request, context)
        try:
            count = self.hit(key, context)
        except RedisError as e:
            logger.warning(f"Rate limiter sin Redis, se permite el request ({key}): {e}")
            return

        if count > self._limit(context):
            logger.info(f"Rate limit excedido: {key} ({count} requests)")
            raise RateLimitedError(
                "Demasiadas solicitudes, intenta más tarde",
                "RATE_LIMITED"
            )
