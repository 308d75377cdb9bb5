# NG-HEADER: Nombre de archivo: audit.py
# NG-HEADER: Ubicación: services/sales/audit.py
# NG-HEADER: Descripción: Registro de auditoría dentro de la unidad de trabajo de ventas.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import AuditLog
from services.auth import Principal

logger = logging.getLogger("pos.sales.audit")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def audit(
    db: AsyncSession,
    action: str,
    table: str,
    entity_id: int | None,
    meta: dict | None,
    principal: Principal | None,
) -> None:
    """Agrega una fila de auditoría a la unidad de trabajo en curso.

    La fila se confirma o revierte junto con la operación: si el INSERT de
    ``audit_log`` falla al hacer flush/commit, la venta o el pago se revierten
    completos.
    """
    db.add(
        AuditLog(
            action=action,
            table=table,
            entity_id=entity_id,
            meta=_jsonable(dict(meta or {})),
            user_id=(principal.id if principal else None),
        )
    )
    logger.debug("audit %s %s id=%s", action, table, entity_id)
