# NG-HEADER: Nombre de archivo: queries.py
# NG-HEADER: Ubicación: services/sales/queries.py
# NG-HEADER: Descripción: Listado de ventas, detalle y clientes con deuda, con visibilidad por rol.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Customer, Product, Sale, SaleLineItem, User
from pos_core.config import settings
from services.auth import Principal
from .errors import InvalidInput
from .permissions import ROLE_SELLER

# Alias en castellano aceptados por compatibilidad con el frontend original
_FILTER_ALIASES = {
    "today": "today",
    "hoy": "today",
    "week": "week",
    "semana": "week",
    "month": "month",
    "mes": "month",
    "year": "year",
    "anio": "year",
    "año": "year",
}


def normalize_filter(filtro: Optional[str]) -> Optional[str]:
    if filtro is None or filtro.strip() == "":
        return None
    key = _FILTER_ALIASES.get(filtro.strip().lower())
    if key is None:
        raise InvalidInput(f"Filtro desconocido: {filtro}")
    return key


def time_window(filtro: str, now: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """Rango ``[inicio, fin)`` alineado al calendario local, en UTC naive (como ``ventas.fecha``).

    La semana empieza el lunes.
    """
    tz = ZoneInfo(tz_name)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_day = now.astimezone(tz).date()
    if filtro == "today":
        start, end = local_day, local_day + timedelta(days=1)
    elif filtro == "week":
        start = local_day - timedelta(days=local_day.weekday())
        end = start + timedelta(days=7)
    elif filtro == "month":
        start = local_day.replace(day=1)
        end = (start.replace(year=start.year + 1, month=1) if start.month == 12
               else start.replace(month=start.month + 1))
    elif filtro == "year":
        start = local_day.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
    else:
        raise InvalidInput(f"Filtro desconocido: {filtro}")

    def _to_utc(d) -> datetime:
        local = datetime(d.year, d.month, d.day, tzinfo=tz)
        return local.astimezone(timezone.utc).replace(tzinfo=None)

    return _to_utc(start), _to_utc(end)


def _money(v) -> float:
    return float(v or 0)


async def list_sales(
    db: AsyncSession,
    principal: Principal,
    filtro: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> list[dict]:
    """Ventas visibles para el llamador, más nuevas primero."""
    key = normalize_filter(filtro)
    stmt = (
        select(
            Sale,
            Customer.nombre.label("cliente_nombre"),
            Customer.rut.label("cliente_rut"),
            User.nombre.label("user_nombre"),
        )
        .outerjoin(Customer, Sale.cliente_id == Customer.id)
        .outerjoin(User, Sale.user_id == User.id)
        .order_by(Sale.fecha.desc(), Sale.id.desc())
    )
    if principal.role == ROLE_SELLER:
        stmt = stmt.where(Sale.user_id == principal.id)
    if key:
        start, end = time_window(key, now or datetime.now(timezone.utc), settings.timezone)
        stmt = stmt.where(Sale.fecha >= start, Sale.fecha < end)

    rows = (await db.execute(stmt)).all()
    out = []
    for s, cliente_nombre, cliente_rut, user_nombre in rows:
        out.append({
            "id": s.id,
            "total": _money(s.total),
            "recibido": _money(s.recibido),
            "cambio": _money(s.cambio),
            "metodo_pago": s.metodo_pago,
            "cliente_id": s.cliente_id,
            "deuda": _money(s.deuda),
            "user_id": s.user_id,
            "titular_transferencia": s.titular_transferencia,
            "banco_transferencia": s.banco_transferencia,
            "fecha": s.fecha.isoformat() if s.fecha else None,
            "cliente_nombre": cliente_nombre,
            "cliente_rut": cliente_rut,
            "user_nombre": user_nombre,
        })
    return out


async def get_sale_detail(db: AsyncSession, sale_id: int, principal: Principal) -> list[dict]:
    """Líneas de la venta con nombre y SKU del producto. Id sin líneas => lista vacía."""
    stmt = (
        select(SaleLineItem, Product.name, Product.sku)
        .join(Product, SaleLineItem.producto_id == Product.id)
        .where(SaleLineItem.venta_id == sale_id)
        .order_by(SaleLineItem.id)
    )
    if principal.role == ROLE_SELLER:
        stmt = stmt.join(Sale, SaleLineItem.venta_id == Sale.id).where(Sale.user_id == principal.id)
    rows = (await db.execute(stmt)).all()
    return [
        {
            "id": li.id,
            "venta_id": li.venta_id,
            "producto_id": li.producto_id,
            "cantidad": float(li.cantidad),
            "precio": _money(li.precio),
            "purchase_price": (float(li.purchase_price) if li.purchase_price is not None else None),
            "producto_nombre": name,
            "sku": sku,
        }
        for li, name, sku in rows
    ]


async def customers_with_debt(db: AsyncSession) -> list[dict]:
    stmt = (
        select(Customer)
        .where(Customer.saldo_pendiente > 0)
        .order_by(Customer.nombre.asc())
    )
    rows = (await db.execute(stmt)).scalars().all()
    return [
        {
            "id": c.id,
            "nombre": c.nombre,
            "rut": c.rut,
            "telefono": c.telefono,
            "saldo_pendiente": _money(c.saldo_pendiente),
        }
        for c in rows
    ]
