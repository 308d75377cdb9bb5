# NG-HEADER: Nombre de archivo: sales.py
# NG-HEADER: Ubicación: services/routers/sales.py
# NG-HEADER: Descripción: Endpoints de ventas (registrar venta, pagar deuda, listado, detalle, clientes con deuda)
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from services.auth import Principal, current_principal
from services.sales.debt import apply_payment
from services.sales.errors import InsufficientStock, ProductNotFound
from services.sales.permissions import Capability, PermissionSet, gate
from services.sales.queries import customers_with_debt, get_sale_detail, list_sales
from services.sales.recorder import record_sale
from services.sales.schemas import parse_debt_payment, parse_sale_payload

router = APIRouter(prefix="/sales", tags=["sales"])


@dataclass
class Caller:
    principal: Principal
    perms: PermissionSet


def require_permission(capability: Capability):
    """Dependencia que resuelve permisos una vez por request y exige ``capability``."""

    async def dep(
        principal: Principal = Depends(current_principal),
        db: AsyncSession = Depends(get_session),
    ) -> Caller:
        perms = await gate(db, principal.id, principal.role, capability)
        return Caller(principal, perms)

    return dep


# --- Ventas: alta ---

@router.post("")
async def create_sale(
    payload: dict,
    caller: Caller = Depends(require_permission(Capability.CREATE_SALES)),
    db: AsyncSession = Depends(get_session),
):
    """Registra venta + líneas + descuento de stock + deuda del cliente en una transacción.

    payload: total, recibido, cambio, metodo_pago, cliente_id?, deuda?, user_id,
    items: [{producto_id, cantidad, precio}], transfer?: {titular, banco}
    """
    data = parse_sale_payload(payload)
    try:
        result = await record_sale(db, data, caller.principal, caller.perms)
    except (ProductNotFound, InsufficientStock) as exc:
        # Contrato histórico del frontend: venta abortada => 500 con el motivo
        return JSONResponse(
            {"error": "Error al registrar venta", "message": exc.message, "code": exc.code},
            status_code=500,
        )
    return {
        "success": True,
        "venta_id": result.sale_id,
        "deuda_guardada": float(result.saved_debt),
        "message": "Venta registrada exitosamente",
    }


# --- Ventas: pago de deuda ---

@router.post("/{sale_id}/pay-debt")
@router.post("/{sale_id}/pagar-deuda", include_in_schema=False)
async def pay_debt(
    sale_id: int,
    payload: dict,
    caller: Caller = Depends(require_permission(Capability.CREATE_SALES)),
    db: AsyncSession = Depends(get_session),
):
    data = parse_debt_payment(payload)
    res = await apply_payment(db, sale_id, data.monto, caller.principal, caller.perms)
    return {
        "success": True,
        "pago_registrado": float(res.paid),
        "deuda_anterior": float(res.previous_debt),
        "deuda_actualizada": float(res.new_debt),
        "cliente_actualizado": res.customer_updated,
        "message": "Pago de deuda registrado exitosamente",
    }


# --- Ventas: listado y detalle ---

@router.get("")
async def get_sales(
    filtro: Optional[str] = Query(None, description="today | week | month | year"),
    caller: Caller = Depends(require_permission(Capability.VIEW_SALES)),
    db: AsyncSession = Depends(get_session),
):
    return await list_sales(db, caller.principal, filtro)


@router.get("/customers/with-debt")
@router.get("/clientes/con-deuda", include_in_schema=False)
async def get_customers_with_debt(
    caller: Caller = Depends(require_permission(Capability.VIEW_CUSTOMERS)),
    db: AsyncSession = Depends(get_session),
):
    return await customers_with_debt(db)


@router.get("/{sale_id}/detail")
@router.get("/{sale_id}/detalles", include_in_schema=False)
async def get_detail(
    sale_id: int,
    caller: Caller = Depends(require_permission(Capability.VIEW_SALES)),
    db: AsyncSession = Depends(get_session),
):
    return await get_sale_detail(db, sale_id, caller.principal)
