"""
Contexto de la aplicación: recursos compartidos del proceso.

Se construye una vez en el startup (lifespan de FastAPI) y se libera en el
shutdown. Los endpoints lo reciben por dependencias (core.dependencies);
no hay clientes globales de BD ni de Redis.
"""
import logging
from typing import Optional

import redis
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from core.config import Settings
from core.database import create_db_engine, create_session_factory
from core.redis_service import CacheService, create_redis_client
from core.storage import StorageService

logger = logging.getLogger(__name__)


class AppContext:
    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        redis_client: redis.Redis,
        storage: Optional[StorageService] = None,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory: sessionmaker = create_session_factory(engine)
        self.redis = redis_client
        self.cache = CacheService(redis_client)
        self.storage = storage or StorageService(settings)
        self.scheduler: Optional[BackgroundScheduler] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        engine = create_db_engine(settings.DATABASE_URL, settings.DB_CONNECT_TIMEOUT)
        redis_client = create_redis_client(settings.REDIS_URL, settings.REDIS_SOCKET_TIMEOUT)
        return cls(settings, engine, redis_client)

    def close(self) -> None:
        """Liberar conexiones (shutdown)"""
        try:
            self.redis.close()
        except redis.RedisError as e:
            logger.warning(f"Error cerrando Redis: {e}")
        self.engine.dispose()
        logger.info("Conexiones de BD y Redis cerradas")
