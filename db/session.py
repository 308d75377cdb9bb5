# NG-HEADER: Nombre de archivo: session.py
# NG-HEADER: Ubicación: db/session.py
# NG-HEADER: Descripción: Creación del engine y sesiones de SQLAlchemy.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Sesión asíncrona para SQLAlchemy."""
import os
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pos_core.config import settings

# ``DEBUG_SQL=1`` activa el modo ``echo`` para ver las consultas generadas y
# facilitar la depuración de errores relacionados a la base de datos.
ECHO = os.getenv("DEBUG_SQL", "0") == "1"

# Priorizar variable de entorno DB_URL si está definida (p. ej., tests la setean a :memory:)
db_url = os.getenv("DB_URL") or settings.db_url
kwargs: dict = {"echo": ECHO, "pool_pre_ping": True}
if db_url.startswith("sqlite+") and ":memory:" in db_url:
    # Usar una DB en memoria compartida y con nombre para múltiples conexiones
    # Referencia: https://www.sqlite.org/inmemorydb.html (URI mode)
    # uri=true: SQLAlchemy pasa mode/cache a SQLite como URI (nunca crea el archivo "file:posmem")
    db_url = "sqlite+aiosqlite:///file:posmem?mode=memory&cache=shared&uri=true"
    kwargs.update({"poolclass": StaticPool})
elif not db_url.startswith("sqlite"):
    # Pool acotado: una request que no consigue conexión falla por timeout en vez de colgarse
    kwargs.update({"pool_size": settings.db_pool_size, "pool_timeout": settings.db_pool_timeout})

engine = create_async_engine(db_url, **kwargs)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Una sesión por request; al cerrar se devuelve la conexión al pool (con rollback si quedó abierta)."""
    async with SessionLocal() as session:
        yield session


# Compatibilidad: algunos módulos esperan ``get_db`` como alias.
get_db = get_session
