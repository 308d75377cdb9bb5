# NG-HEADER: Nombre de archivo: inventory.py
# NG-HEADER: Ubicación: services/sales/inventory.py
# NG-HEADER: Descripción: Validación y descuento de stock por línea de venta.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Descuento de stock dentro de la transacción de una venta.

Nunca confirma por su cuenta: el commit/rollback lo decide quien abrió la
unidad de trabajo. El descuento es un UPDATE condicional
(``stock >= cantidad``), así dos ventas concurrentes no pueden dejar stock
negativo aunque ambas hayan pasado la verificación previa.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Product
from .errors import InsufficientStock, ProductNotFound

STOCK_DECIMALS = 3


def _as_decimal(value) -> Decimal:
    return Decimal(str(value if value is not None else 0))


async def lock_product(db: AsyncSession, product_id: int) -> Product:
    """Lee el producto bloqueando la fila (FOR UPDATE en Postgres)."""
    stmt = (
        select(Product)
        .where(Product.id == product_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    prod = (await db.execute(stmt)).scalar_one_or_none()
    if prod is None:
        raise ProductNotFound(product_id)
    return prod


def check_available(product: Product, cantidad: Decimal) -> None:
    available = _as_decimal(product.stock)
    if cantidad > available:
        raise InsufficientStock(product.id, product.name, cantidad, available)


async def apply_decrement(db: AsyncSession, product_id: int, cantidad: Decimal) -> Decimal:
    """``stock -= cantidad`` sólo si el resultado queda >= 0. Devuelve el stock nuevo."""
    res = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= cantidad)
        .values(stock=func.round(Product.stock - cantidad, STOCK_DECIMALS))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        row = (await db.execute(select(Product.name, Product.stock).where(Product.id == product_id))).first()
        if row is None:
            raise ProductNotFound(product_id)
        raise InsufficientStock(product_id, row.name, cantidad, _as_decimal(row.stock))
    refreshed = (
        await db.execute(
            select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    return _as_decimal(refreshed.stock)
