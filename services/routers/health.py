# NG-HEADER: Nombre de archivo: health.py
# NG-HEADER: Ubicación: services/routers/health.py
# NG-HEADER: Descripción: Endpoints de healthcheck (liveness y conectividad DB).
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

"""Endpoints de health.

- Liveness básico (`/health`)
- Conectividad DB (`/health/db`)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_db

router = APIRouter(prefix="/health", tags=["health"])
START_TIME = time.monotonic()
logger = logging.getLogger("pos.health")


@router.get("")
async def health_root() -> Dict[str, str]:
    """Liveness simple del backend (si responde, está vivo)."""
    return {"status": "ok"}


@router.get("/db")
async def health_db(db: AsyncSession = Depends(get_db)):
    now = datetime.now(timezone.utc).isoformat()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Healthcheck DB falló")
        return JSONResponse(
            {"status": "Error", "database": "Disconnected", "timestamp": now},
            status_code=500,
        )
    return {
        "status": "OK",
        "database": "Connected",
        "timestamp": now,
        "uptime_s": round(time.monotonic() - START_TIME, 1),
    }
