# NG-HEADER: Nombre de archivo: uow.py
# NG-HEADER: Ubicación: services/sales/uow.py
# NG-HEADER: Descripción: Ejecución de una unidad de trabajo atómica con commit/rollback y timeout.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pos_core.config import settings
from .errors import Internal, SalesError, UnitOfWorkTimeout

logger = logging.getLogger("pos.sales")

T = TypeVar("T")


async def run_unit_of_work(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    *,
    label: str,
    timeout: float | None = None,
) -> T:
    """Ejecuta ``work`` y confirma; ante cualquier falla revierte todo y relanza.

    Errores de negocio (``SalesError``) se relanzan tal cual; fallas de storage se
    loguean completas y se devuelven como ``Internal`` sin detalles de la base.
    """
    limit = settings.tx_timeout_seconds if timeout is None else timeout
    try:
        result = await asyncio.wait_for(work(), timeout=limit)
        await db.commit()
        return result
    except asyncio.TimeoutError as exc:
        await db.rollback()
        logger.error("[%s] unidad de trabajo excedió %.1fs, revertida", label, limit)
        raise UnitOfWorkTimeout("La operación tardó demasiado, intentá de nuevo") from exc
    except SalesError as exc:
        await db.rollback()
        logger.warning("[%s] revertida: %s", label, exc.message)
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("[%s] error de base de datos, transacción revertida", label)
        raise Internal("Error interno del servidor") from exc
