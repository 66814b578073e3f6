import logging

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.errors import BadRequestError, ServerError
from core.identifiers import generate_display_code

logger = logging.getLogger(__name__)

# Base para los modelos
Base = declarative_base()


def create_db_engine(database_url: str, connect_timeout: int = 20) -> Engine:
    """
    Crear el engine de SQLAlchemy.

    PostgreSQL en producción; SQLite se acepta para desarrollo local y tests
    (con claves foráneas activadas para respetar los ON DELETE).
    """
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Una sola conexión compartida para que la BD en memoria sobreviva
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, **options)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        pool_timeout=connect_timeout,
        pool_recycle=120,
        connect_args={"connect_timeout": connect_timeout},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def commit_or_bad_request(db: Session, message: str, error: str = "DUPLICATE_SLUG") -> None:
    """
    Confirmar la transacción. Una violación de UNIQUE (slug o código que
    otro request creó en paralelo) se responde como 400, no como 500.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Violación de integridad al confirmar: {e.orig}")
        raise BadRequestError(message, error)


def generate_unique_code(db: Session, column, prefix: str, attempts: int = 5) -> str:
    """Código visible que todavía no existe en la tabla de `column`"""
    for _ in range(attempts):
        code = generate_display_code(prefix)
        if db.execute(select(column).where(column == code)).first() is None:
            return code
    raise ServerError("No se pudo generar un código único, intenta de nuevo", "CODE_GENERATION_FAILED")
