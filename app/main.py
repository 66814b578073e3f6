from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pathlib import Path
from contextlib import asynccontextmanager
import logging

from core.config import settings
from core.context import AppContext
from core.errors import AppError

# Rutas de endpoints importadas
from routes.admin import router as admin_router
from routes.categories import router as categories_router
from routes.products import router as products_router
from routes.orders import router as orders_router
from routes.metrics import router as metrics_router

# Tareas automáticas
from core.tasks import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

docs_url = "/docs" if settings.ENV == "development" else None
redoc_url = "/redoc" if settings.ENV == "development" else None
openapi_url = "/openapi.json" if settings.ENV == "development" else None

# ==================== LIFESPAN EVENTS ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gestiona el startup y shutdown de la aplicación.

    Si app.state.context ya existe (tests) se usa tal cual y no se cierra aquí.
    """
    # Startup
    owns_context = getattr(app.state, "context", None) is None
    if owns_context:
        app.state.context = AppContext.from_settings(settings)
    context = app.state.context
    start_scheduler(context)
    yield
    # Shutdown
    stop_scheduler(context)
    if owns_context:
        context.close()
        app.state.context = None

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
    redirect_slashes=False,  # Evita redirects 307
    lifespan=lifespan
)

# CORS - allow_credentials=True necesario para la cookie HttpOnly del admin
allow_origins = [origin.strip() for origin in settings.CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== EXCEPTION HANDLERS ====================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Errores de aplicación (400/401/404/429/500) con el formato estándar.
    """
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Maneja errores de validación de Pydantic y los convierte al formato estándar.
    """
    errors = exc.errors()

    # Construir mensaje descriptivo
    error_messages = []
    validation_errors = []

    for error in errors:
        field = " -> ".join(str(loc) for loc in error["loc"][1:])  # Omitir 'body' / 'query'
        msg = error["msg"]
        error_type = error["type"]
        ctx = error.get("ctx") or {}

        # Mensajes personalizados según el tipo de error
        if error_type == "string_too_short":
            error_messages.append(f"El campo '{field}' debe tener al menos {ctx.get('min_length', '')} caracteres")
        elif error_type == "string_too_long":
            error_messages.append(f"El campo '{field}' debe tener máximo {ctx.get('max_length', '')} caracteres")
        elif error_type == "too_short":
            error_messages.append(f"El campo '{field}' debe tener al menos {ctx.get('min_length', '')} elemento(s)")
        elif error_type == "missing":
            error_messages.append(f"El campo '{field}' es requerido")
        elif error_type == "value_error":
            error_messages.append(f"El campo '{field}' tiene un valor inválido: {msg}")
        elif error_type == "enum":
            error_messages.append(f"El campo '{field}' debe ser uno de: {ctx.get('expected', '')}")
        elif error_type.startswith("greater_than"):
            limit = ctx.get("gt", ctx.get("ge", ""))
            error_messages.append(f"El campo '{field}' debe ser mayor que {limit}")
        elif error_type.startswith("less_than"):
            limit = ctx.get("lt", ctx.get("le", ""))
            error_messages.append(f"El campo '{field}' debe ser menor que {limit}")
        elif "email" in error_type.lower():
            error_messages.append(f"El campo '{field}' debe ser un email válido")
        else:
            error_messages.append(f"El campo '{field}': {msg}")

        # Agregar error detallado para debugging
        validation_errors.append({
            "field": field,
            "message": error_messages[-1],
            "type": error_type
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "status_code": 400,
            "message": "Error de validación: " + "; ".join(error_messages),
            "error": "VALIDATION_ERROR",
            "details": validation_errors
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Ruta inexistente, método no permitido, etc.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "status_code": exc.status_code,
            "message": str(exc.detail),
            "error": "HTTP_ERROR"
        },
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Cualquier otro error: se registra completo y al cliente solo le llega un 500 genérico.
    """
    logger.exception(f"Error no manejado en {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "status_code": 500,
            "message": "Error interno del servidor",
            "error": "SERVER_ERROR"
        }
    )

# Registrar routers
app.include_router(admin_router, prefix=API_PREFIX)
app.include_router(categories_router, prefix=API_PREFIX)
app.include_router(products_router, prefix=API_PREFIX)
app.include_router(orders_router, prefix=API_PREFIX)
app.include_router(metrics_router, prefix=API_PREFIX)

# Configurar directorio de uploads para servir archivos estáticos
# IMPORTANTE: Debe ir después de los routers para no capturar las rutas de API
# (solo si las URLs de imágenes son rutas locales, no un CDN)
if settings.STORAGE_BASE_URL.startswith("/"):
    uploads_path = Path(settings.UPLOAD_DIR)
    uploads_path.mkdir(parents=True, exist_ok=True)
    app.mount(settings.STORAGE_BASE_URL, StaticFiles(directory=str(uploads_path)), name="static")


@app.get("/")
async def root():
    return {
        "success": True,
        "status_code": 200,
        "message": f"{settings.API_TITLE} {settings.API_VERSION}",
        "data": {"docs": docs_url}
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
