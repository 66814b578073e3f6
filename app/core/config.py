import os
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # API Config
    API_TITLE: str = "Gemas API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "API para la tienda de gemas: productos, categorías y órdenes"
    ENV: str = os.getenv("ENV", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://user:pass@db:5432/gemas")
    DB_CONNECT_TIMEOUT: int = 20  # segundos

    # Redis
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    REDIS_SOCKET_TIMEOUT: float = 2.0  # segundos, un timeout se trata como cache miss

    # Security & JWT (sesión de admin)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key-change-in-production-PLEASE")
    ALGORITHM: str = "HS256"
    ADMIN_TOKEN_EXPIRE_DAYS: int = 7
    ADMIN_COOKIE_NAME: str = "token"

    # Cache
    CACHE_TTL_SECONDS: int = 600  # 10 minutos, red de seguridad de la invalidación
    ADMIN_CACHE_TTL_SECONDS: int = 300
    CATEGORY_PAGE_LIMIT: int = 12
    MAX_PAGE_LIMIT: int = 100
    ALL_PRODUCTS_SLUG: str = "all"  # pseudo-categoría con todos los productos

    # Rate limiting (ventana fija por IP)
    RATE_LIMIT_WINDOW_SECONDS: int = 10 * 60
    PRODUCT_RATE_LIMIT: int = 5
    CATEGORY_RATE_LIMIT: int = 10
    ORDER_RATE_LIMIT: int = 15
    METRICS_RATE_LIMIT: int = 15
    TRUST_PROXY_HEADERS: bool = False

    # Upload / almacenamiento de imágenes
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "/app/uploads")
    STORAGE_BASE_URL: str = os.getenv("STORAGE_BASE_URL", "/static")
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # 5MB
    IMAGE_MAX_WIDTH: int = 600
    WEBP_QUALITY: int = 80
    UPLOAD_RETRIES: int = 2
    DELETE_RETRIES: int = 5
    STORAGE_RETRY_DELAY_SECONDS: float = 1.0

    # Tareas automáticas (0 desactiva el ping)
    KEEPALIVE_INTERVAL_SECONDS: int = 240

    # CORS
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000")

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
