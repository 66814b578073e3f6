"""
Script para inicializar la base de datos.
Crea todas las tablas definidas en models/ y, opcionalmente, un código de
acceso de administrador.

Uso (desde app/):
    python -m scripts.init_db
    python -m scripts.init_db --passcode 123456 --owner "Ana"
    python -m scripts.init_db --drop
"""
import argparse

from core.config import settings
from core.database import Base, create_db_engine, create_session_factory
from core.security import hash_passcode
from models import AdminPasscode


def init_db(engine):
    """Crear todas las tablas en la base de datos"""
    print("🔨 Creando tablas en la base de datos...")
    Base.metadata.create_all(bind=engine)
    print("✅ Tablas creadas exitosamente!")
    print("\n📋 Tablas disponibles:")
    for table in Base.metadata.sorted_tables:
        print(f"   ├── {table.name}")


def drop_db(engine):
    """Eliminar todas las tablas de la base de datos"""
    print("⚠️  Eliminando todas las tablas...")
    Base.metadata.drop_all(bind=engine)
    print("✅ Tablas eliminadas!")


def create_passcode(session_factory, passcode: str, owner: str) -> AdminPasscode:
    """Registrar un código de acceso (se guarda solo el hash bcrypt)"""
    db = session_factory()
    try:
        admin = AdminPasscode(passcode_hash=hash_passcode(passcode), owner=owner)
        db.add(admin)
        db.commit()
        db.refresh(admin)
        print(f"🔑 Código de acceso creado para {owner} (id: {admin.id})")
        return admin
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Inicializar la base de datos")
    parser.add_argument("--drop", action="store_true", help="Eliminar las tablas antes de crearlas")
    parser.add_argument("--passcode", help="Código de acceso de administrador a registrar")
    parser.add_argument("--owner", default="admin", help="Nombre del dueño del código")
    args = parser.parse_args()

    engine = create_db_engine(settings.DATABASE_URL, settings.DB_CONNECT_TIMEOUT)
    if args.drop:
        drop_db(engine)
    init_db(engine)
    if args.passcode:
        create_passcode(create_session_factory(engine), args.passcode, args.owner)
    engine.dispose()
