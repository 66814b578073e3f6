"""
Rellenar slugs faltantes de productos y categorías.

Para filas importadas sin slug (vacío). Si el slug derivado ya está en uso
se agrega un sufijo numérico ("anillo-2"). No toca Redis: al terminar hay
que vaciar el cache o esperar el TTL.

Uso (desde app/):
    python -m scripts.backfill_slugs
"""
from sqlalchemy import or_, select

from core.config import settings
from core.database import create_db_engine, create_session_factory
from core.identifiers import new_id, slugify
from models import Category, Product


def _free_slug(base: str, taken: set) -> str:
    slug = base or new_id()[:8]
    suffix = 2
    while slug in taken:
        slug = f"{base}-{suffix}"
        suffix += 1
    taken.add(slug)
    return slug


def backfill_model(db, model) -> int:
    """Asignar slug a las filas de `model` que no tienen. Retorna cuántas se actualizaron."""
    taken = set(db.execute(select(model.slug).where(model.slug != "")).scalars())
    rows = db.execute(
        select(model).where(or_(model.slug.is_(None), model.slug == ""))
    ).scalars().all()

    if not rows:
        print(f"⚠️  {model.__tablename__}: no hay filas sin slug")
        return 0

    for row in rows:
        row.slug = _free_slug(slugify(row.name), taken)
        print(f"✅ Slug actualizado: {row.name} → {row.slug}")

    db.commit()
    return len(rows)


def backfill_slugs(session_factory) -> int:
    print("🔁 Rellenando slugs...")
    db = session_factory()
    try:
        updated = backfill_model(db, Category) + backfill_model(db, Product)
    finally:
        db.close()
    print(f"🎉 Backfill completo: {updated} fila(s) actualizada(s)")
    return updated


if __name__ == "__main__":
    engine = create_db_engine(settings.DATABASE_URL, settings.DB_CONNECT_TIMEOUT)
    backfill_slugs(create_session_factory(engine))
    engine.dispose()
