# NG-HEADER: Nombre de archivo: auth.py
# NG-HEADER: Ubicación: services/auth.py
# NG-HEADER: Descripción: Resolución del usuario autenticado (id + rol) para cada request.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Identidad del llamador.

La emisión y verificación de tokens vive en el gateway de autenticación; este
backend recibe el resultado ya verificado en cabeceras:

- ``X-User-Id``: id entero del usuario
- ``X-User-Role``: ``admin`` | ``vendedor``
- ``X-Internal-Service-Token``: secreto compartido con el gateway
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from fastapi import HTTPException, Request

from pos_core.config import settings

logger = logging.getLogger("pos.auth")


@dataclass(frozen=True)
class Principal:
    """Usuario autenticado de la request."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def verify_internal_service_token(request: Request) -> bool:
    """Verifica si la petición incluye un token válido del gateway.

    Returns:
        True si el token es válido, False en caso contrario.
    """
    token_from_header = request.headers.get("X-Internal-Service-Token")
    if not token_from_header:
        return False

    expected_token = settings.internal_service_token
    if not expected_token:
        # Si no está configurado, rechazar
        return False

    # Comparación de tiempo constante
    return secrets.compare_digest(token_from_header, expected_token)


async def current_principal(request: Request) -> Principal:
    """Dependencia FastAPI que devuelve el ``Principal`` de la request."""

    if not (verify_internal_service_token(request) or settings.trust_principal_headers):
        raise HTTPException(status_code=401, detail="No autenticado")

    raw_id = (request.headers.get("x-user-id") or "").strip()
    role = (request.headers.get("x-user-role") or "").strip().lower()
    if not raw_id.isdigit() or not role:
        logger.debug("[auth] cabeceras de identidad ausentes o inválidas path=%s", request.url.path)
        raise HTTPException(status_code=401, detail="No autenticado")
    return Principal(id=int(raw_id), role=role)


__all__ = [
    "Principal",
    "current_principal",
    "verify_internal_service_token",
]
