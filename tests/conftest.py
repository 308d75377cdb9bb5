#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: conftest.py
# NG-HEADER: Ubicación: tests/conftest.py
# NG-HEADER: Descripción: Fixtures y configuración compartida de Pytest.
# NG-HEADER: Lineamientos: Ver DESIGN.md
import os
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Asegurar path del proyecto antes de importar módulos internos
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

# -------- Entorno base de tests --------
# DB en memoria y cabeceras de identidad aceptadas sin gateway
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "dev"
os.environ["TRUST_PRINCIPAL_HEADERS"] = "1"
os.environ["INTERNAL_SERVICE_TOKEN"] = "test-internal-token"
os.environ.setdefault("POS_TIMEZONE", "America/Santiago")

import db.session as _session  # noqa: E402
import db.base as _base  # noqa: E402
import db.models  # noqa: F401,E402
from db.models import AuditLog, Customer, Product, Sale, SaleLineItem, User, UserPermission  # noqa: E402
from sqlalchemy import select  # noqa: E402

Base = _base.Base


@pytest_asyncio.fixture(scope="function", autouse=True)
async def db_session():
    """DB limpia por test (SQLite memoria compartida). Retorna sesión para usar en fixtures/tests."""
    engine = _session.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with _session.SessionLocal() as session:
        yield session

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# -------- Cliente HTTP --------
from services.api import app  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402


@pytest_asyncio.fixture()
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# -------- Datos de prueba --------

@pytest.fixture()
def seed():
    """Helpers para poblar la base con sesiones propias (cada uno confirma al terminar)."""

    class _Seed:
        async def product(self, id: int, *, stock, name: str | None = None, price=10, purchase_price=4) -> Product:
            async with _session.SessionLocal() as s:
                p = Product(
                    id=id,
                    sku=f"SKU-{id}",
                    name=name or f"Producto {id}",
                    price=Decimal(str(price)),
                    purchase_price=(Decimal(str(purchase_price)) if purchase_price is not None else None),
                    stock=Decimal(str(stock)),
                )
                s.add(p)
                await s.commit()
                return p

        async def customer(self, id: int, *, saldo=0, nombre: str | None = None, rut: str | None = None) -> Customer:
            async with _session.SessionLocal() as s:
                c = Customer(
                    id=id,
                    nombre=nombre or f"Cliente {id}",
                    rut=rut,
                    saldo_pendiente=Decimal(str(saldo)),
                )
                s.add(c)
                await s.commit()
                return c

        async def user(self, id: int, *, rol: str, nombre: str | None = None) -> User:
            async with _session.SessionLocal() as s:
                u = User(id=id, username=f"user{id}", nombre=nombre or f"Usuario {id}", rol=rol)
                s.add(u)
                await s.commit()
                return u

        async def permissions(self, user_id: int, **flags) -> None:
            async with _session.SessionLocal() as s:
                s.add(UserPermission(user_id=user_id, permissions=dict(flags)))
                await s.commit()

        async def sale(
            self,
            *,
            user_id: int,
            total=100,
            deuda=0,
            cliente_id: int | None = None,
            fecha: datetime | None = None,
            items: list[tuple[int, object, object]] | None = None,
        ) -> int:
            """Venta cargada directo en la base (sin pasar por el motor)."""
            async with _session.SessionLocal() as s:
                sale = Sale(
                    total=Decimal(str(total)),
                    recibido=Decimal(str(total)) - Decimal(str(deuda)),
                    cambio=Decimal("0"),
                    metodo_pago="efectivo",
                    cliente_id=cliente_id,
                    deuda=Decimal(str(deuda)),
                    user_id=user_id,
                )
                if fecha is not None:
                    sale.fecha = fecha
                s.add(sale)
                await s.flush()
                for producto_id, cantidad, precio in items or []:
                    s.add(SaleLineItem(
                        venta_id=sale.id,
                        producto_id=producto_id,
                        cantidad=Decimal(str(cantidad)),
                        precio=Decimal(str(precio)),
                    ))
                await s.commit()
                return sale.id

    return _Seed()


@pytest.fixture()
def fetch():
    """Lecturas con sesión nueva, para ver lo confirmado y no el identity map de otra sesión."""

    class _Fetch:
        async def stock(self, product_id: int) -> Decimal:
            async with _session.SessionLocal() as s:
                v = await s.scalar(select(Product.stock).where(Product.id == product_id))
                return Decimal(str(v))

        async def saldo(self, customer_id: int) -> Decimal:
            async with _session.SessionLocal() as s:
                v = await s.scalar(select(Customer.saldo_pendiente).where(Customer.id == customer_id))
                return Decimal(str(v))

        async def deuda(self, sale_id: int) -> Decimal:
            async with _session.SessionLocal() as s:
                v = await s.scalar(select(Sale.deuda).where(Sale.id == sale_id))
                return Decimal(str(v))

        async def count(self, model) -> int:
            async with _session.SessionLocal() as s:
                return len((await s.execute(select(model))).scalars().all())

        async def audits(self, action: str) -> list[AuditLog]:
            async with _session.SessionLocal() as s:
                rows = await s.execute(select(AuditLog).where(AuditLog.action == action).order_by(AuditLog.id))
                return list(rows.scalars().all())

    return _Fetch()
