# NG-HEADER: Nombre de archivo: debt.py
# NG-HEADER: Ubicación: services/sales/debt.py
# NG-HEADER: Descripción: Pago parcial de la deuda de una venta y reflejo en el saldo del cliente.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Sale
from services.auth import Principal
from .audit import audit
from .errors import ConcurrentUpdate, Forbidden, NoOutstandingDebt, SaleNotFound
from .permissions import PermissionSet
from .recorder import book_customer_balance
from .uow import run_unit_of_work

logger = logging.getLogger("pos.sales")


@dataclass
class DebtPayment:
    paid: Decimal
    previous_debt: Decimal
    new_debt: Decimal
    customer_updated: bool


def clamp_payment(amount: Decimal, current_debt: Decimal) -> tuple[Decimal, Decimal]:
    """Devuelve ``(pagado, deuda_nueva)``; el pago nunca supera la deuda."""
    paid = min(amount, current_debt)
    return paid, current_debt - paid


async def apply_payment(
    db: AsyncSession,
    sale_id: int,
    amount: Decimal,
    principal: Principal,
    perms: PermissionSet,
) -> DebtPayment:
    """Registra un pago contra ``ventas.deuda`` y el saldo del cliente en una transacción.

    La fila de la venta se lee con FOR UPDATE y el descuento es relativo
    (``deuda = deuda - pagado``) condicionado a ``deuda >= pagado``: dos pagos
    simultáneos se aplican ambos o uno falla con ``ConcurrentUpdate``, nunca
    se pisa una actualización.
    """

    async def _work() -> DebtPayment:
        sale = (
            await db.execute(
                select(Sale)
                .where(Sale.id == sale_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if sale is None:
            raise SaleNotFound(sale_id)
        current = Decimal(str(sale.deuda or 0))
        if current <= 0:
            raise NoOutstandingDebt(sale_id)
        if not principal.is_admin and sale.user_id != principal.id:
            raise Forbidden("No puedes modificar ventas de otros usuarios")

        paid, _ = clamp_payment(amount, current)
        res = await db.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.deuda >= paid)
            .values(deuda=func.round(Sale.deuda - paid, 2))
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            raise ConcurrentUpdate("La deuda de la venta cambió durante el pago, reintentá")
        new_debt = Decimal(str(await db.scalar(select(Sale.deuda).where(Sale.id == sale_id))))
        previous = new_debt + paid

        customer_updated = False
        if sale.cliente_id:
            customer_updated = await book_customer_balance(
                db,
                customer_id=sale.cliente_id,
                delta=-paid,
                sale_id=sale_id,
                principal=principal,
                perms=perms,
            )
        else:
            logger.info("Venta %s sin cliente asociado, se omite saldo", sale_id)

        audit(db, "sale_debt_payment", "ventas", sale_id, {
            "monto_solicitado": amount,
            "pagado": paid,
            "deuda_anterior": previous,
            "deuda_nueva": new_debt,
            "cliente_id": sale.cliente_id,
            "customer_updated": customer_updated,
        }, principal)
        return DebtPayment(paid=paid, previous_debt=previous, new_debt=new_debt, customer_updated=customer_updated)

    result = await run_unit_of_work(db, _work, label="sale_debt_payment")
    logger.info(
        "Pago de deuda venta_id=%s pagado=%s deuda %s -> %s cliente_actualizado=%s",
        sale_id, result.paid, result.previous_debt, result.new_debt, result.customer_updated,
    )
    return result
