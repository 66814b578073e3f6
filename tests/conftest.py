"""
Fixtures compartidas.

Cada test recibe un AppContext propio: SQLite en memoria (con claves foráneas
activadas) y FakeRedis. La app se levanta con TestClient usando ese contexto.
"""
import io
import os
import sys
import tempfile
from decimal import Decimal

import pytest

# Agregar app al path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'app'))
sys.path.insert(0, os.path.dirname(__file__))

# Antes de importar main (lee settings al importar)
os.environ.setdefault("ENV", "development")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="gemas-uploads-"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient
from PIL import Image

from core.config import Settings
from core.context import AppContext
from core.database import Base, create_db_engine
from core.identifiers import slugify
from core.security import hash_passcode
from models import AdminPasscode, Category, Product, ProductImage
from main import app
from fakes import FakeRedis

ADMIN_PASSCODE = "482913"


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        ENV="development",
        DATABASE_URL="sqlite://",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        STORAGE_RETRY_DELAY_SECONDS=0,
        KEEPALIVE_INTERVAL_SECONDS=0,
        PRODUCT_RATE_LIMIT=100,
        CATEGORY_RATE_LIMIT=100,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def context(test_settings, fake_redis):
    engine = create_db_engine(test_settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    ctx = AppContext(test_settings, engine, fake_redis)
    yield ctx
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(context):
    session = context.session_factory()
    yield session
    session.close()


@pytest.fixture
def client(context):
    """Cliente HTTP con el contexto de prueba inyectado"""
    app.state.context = context
    with TestClient(app) as test_client:
        yield test_client
    app.state.context = None


@pytest.fixture
def admin(db):
    passcode = AdminPasscode(passcode_hash=hash_passcode(ADMIN_PASSCODE), owner="Admin Test")
    db.add(passcode)
    db.commit()
    db.refresh(passcode)
    return passcode


@pytest.fixture
def admin_headers(client, admin):
    """Login y retornar header Bearer"""
    response = client.post("/api/v1/login", json={"code": ADMIN_PASSCODE})
    assert response.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


def make_image_bytes(size=(800, 400), color=(30, 80, 200), fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_file():
    """Archivo de imagen listo para multipart"""
    return ("gem.png", make_image_bytes(), "image/png")


# ==================== DATOS DIRECTOS EN BD ====================

@pytest.fixture
def make_category(db):
    def _make(name):
        category = Category(name=name, slug=slugify(name))
        db.add(category)
        db.commit()
        db.refresh(category)
        return category
    return _make


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(name, category=None, price="100.00", images=1):
        counter["n"] += 1
        product = Product(
            code=f"PROD-{counter['n']:04d}",
            name=name,
            slug=slugify(name),
            description=f"Descripción de {name}",
            price=Decimal(price),
            unit=1,
            category_id=category.id if category else None,
        )
        product.images = [
            ProductImage(
                image_url=f"/static/products/{slugify(name)}-{i}.webp",
                public_id=f"products/{slugify(name)}-{i}"
            )
            for i in range(images)
        ]
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make
