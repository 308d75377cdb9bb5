# NG-HEADER: Nombre de archivo: recorder.py
# NG-HEADER: Ubicación: services/sales/recorder.py
# NG-HEADER: Descripción: Alta atómica de venta: cabecera, líneas, descuento de stock y deuda del cliente.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Customer, Sale, SaleLineItem
from services.auth import Principal
from .audit import audit
from .errors import Forbidden
from .inventory import apply_decrement, check_available, lock_product
from .permissions import ROLE_SELLER, PermissionSet
from .schemas import SaleCreate
from .uow import run_unit_of_work

logger = logging.getLogger("pos.sales")


@dataclass
class RecordedSale:
    sale_id: int
    saved_debt: Decimal
    customer_updated: bool


async def book_customer_balance(
    db: AsyncSession,
    *,
    customer_id: int,
    delta: Decimal,
    sale_id: int,
    principal: Principal,
    perms: PermissionSet,
) -> bool:
    """Suma ``delta`` (positivo o negativo) al saldo del cliente, con piso en 0.

    Falla blanda: si el cliente no existe o un vendedor no tiene
    ``can_edit_customers`` no se toca el saldo, se deja constancia en auditoría
    y se devuelve False. La operación que llama sigue adelante.
    """
    reason = None
    exists = await db.scalar(select(Customer.id).where(Customer.id == customer_id))
    if exists is None:
        reason = "customer_not_found"
    elif principal.role == ROLE_SELLER and not perms.can_edit_customers:
        reason = "missing_can_edit_customers"
    else:
        new_balance = func.round(Customer.saldo_pendiente + delta, 2)
        await db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(saldo_pendiente=case((new_balance > 0, new_balance), else_=0))
            .execution_options(synchronize_session=False)
        )
    if reason:
        logger.warning(
            "Saldo de cliente NO actualizado cliente_id=%s venta_id=%s delta=%s motivo=%s",
            customer_id, sale_id, delta, reason,
        )
        audit(db, "customer_balance_skipped", "clientes", customer_id, {
            "venta_id": sale_id,
            "delta": delta,
            "reason": reason,
        }, principal)
        return False
    return True


async def record_sale(
    db: AsyncSession,
    data: SaleCreate,
    principal: Principal,
    perms: PermissionSet,
) -> RecordedSale:
    """Registra la venta completa o nada.

    Orden: cabecera -> por cada ítem (producto, stock, detalle, descuento) ->
    saldo del cliente si hay deuda. Producto inexistente o stock insuficiente
    revierten la transacción entera.
    """
    if principal.role == ROLE_SELLER and data.user_id != principal.id:
        raise Forbidden("No puedes registrar ventas a nombre de otro usuario")

    async def _work() -> RecordedSale:
        t0 = time.perf_counter()
        transfer = data.transfer
        sale = Sale(
            total=data.total,
            recibido=data.recibido,
            cambio=data.cambio,
            metodo_pago=data.metodo_pago,
            cliente_id=data.cliente_id,
            deuda=data.deuda,
            user_id=data.user_id,
            titular_transferencia=(transfer.titular or None) if transfer else None,
            banco_transferencia=(transfer.banco or None) if transfer else None,
        )
        db.add(sale)
        await db.flush()

        deltas = []
        for item in data.items:
            prod = await lock_product(db, item.producto_id)
            check_available(prod, item.cantidad)
            db.add(SaleLineItem(
                venta_id=sale.id,
                producto_id=prod.id,
                cantidad=item.cantidad,
                precio=item.precio,
                purchase_price=prod.purchase_price,
            ))
            new_stock = await apply_decrement(db, prod.id, item.cantidad)
            deltas.append({"producto_id": prod.id, "delta": -item.cantidad, "new": new_stock})
        await db.flush()

        customer_updated = False
        if data.cliente_id and data.deuda > 0:
            customer_updated = await book_customer_balance(
                db,
                customer_id=data.cliente_id,
                delta=data.deuda,
                sale_id=sale.id,
                principal=principal,
                perms=perms,
            )

        saved_debt = await db.scalar(select(Sale.deuda).where(Sale.id == sale.id))
        audit(db, "sale_create", "ventas", sale.id, {
            "cliente_id": data.cliente_id,
            "items": len(data.items),
            "total": data.total,
            "deuda": data.deuda,
            "customer_updated": customer_updated,
            "stock_deltas": deltas,
            "elapsed_ms": round((time.perf_counter() - t0) * 1000, 2),
        }, principal)
        return RecordedSale(
            sale_id=sale.id,
            saved_debt=Decimal(str(saved_debt if saved_debt is not None else 0)),
            customer_updated=customer_updated,
        )

    result = await run_unit_of_work(db, _work, label="sale_create")
    logger.info(
        "Venta registrada venta_id=%s user_id=%s deuda=%s cliente_actualizado=%s",
        result.sale_id, data.user_id, result.saved_debt, result.customer_updated,
    )
    return result
