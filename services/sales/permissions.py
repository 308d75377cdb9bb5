# NG-HEADER: Nombre de archivo: permissions.py
# NG-HEADER: Ubicación: services/sales/permissions.py
# NG-HEADER: Descripción: Resolución del conjunto de permisos efectivo por usuario y rol.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Permisos efectivos.

El blob libre de ``user_permissions`` se traduce a un conjunto cerrado de
capacidades (``Capability``) una sola vez por request; el resultado viaja
explícito por la cadena de llamadas en lugar de re-consultarse.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import UserPermission
from .errors import Forbidden, Internal

logger = logging.getLogger("pos.sales.permissions")

ROLE_ADMIN = "admin"
ROLE_SELLER = "vendedor"
KNOWN_ROLES = frozenset({ROLE_ADMIN, ROLE_SELLER})


class Capability(str, enum.Enum):
    VIEW_PRODUCTS = "can_view_products"
    EDIT_PRODUCTS = "can_edit_products"
    DELETE_PRODUCTS = "can_delete_products"
    CREATE_PRODUCTS = "can_create_products"
    VIEW_SALES = "can_view_sales"
    CREATE_SALES = "can_create_sales"
    VIEW_CUSTOMERS = "can_view_customers"
    EDIT_CUSTOMERS = "can_edit_customers"
    VIEW_REPORTS = "can_view_reports"
    MANAGE_STOCK = "can_manage_stock"


@dataclass(frozen=True)
class PermissionSet:
    can_view_products: bool = False
    can_edit_products: bool = False
    can_delete_products: bool = False
    can_create_products: bool = False
    can_view_sales: bool = False
    can_create_sales: bool = False
    can_view_customers: bool = False
    can_edit_customers: bool = False
    can_view_reports: bool = False
    can_manage_stock: bool = False

    def allows(self, capability: Capability) -> bool:
        return bool(getattr(self, capability.value))

    @classmethod
    def all(cls) -> "PermissionSet":
        return cls(**{f.name: True for f in fields(cls)})

    @classmethod
    def none(cls) -> "PermissionSet":
        return cls()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "PermissionSet":
        """Construye el set desde el blob guardado. Claves ausentes => False."""
        raw = raw or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in raw if k not in known)
        if unknown:
            logger.debug("Claves de permiso desconocidas ignoradas: %s", unknown)
        return cls(**{name: bool(raw.get(name, False)) for name in known})

    def as_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Vendedor sin fila en user_permissions
DEFAULT_SELLER_PERMISSIONS = PermissionSet(
    can_view_products=True,
    can_view_sales=True,
    can_create_sales=True,
    can_view_customers=True,
)


async def resolve_permissions(db: AsyncSession, user_id: int, role: str) -> PermissionSet:
    """Devuelve el set efectivo. Sólo lectura.

    - admin: todo permitido, sin consulta
    - vendedor: fila guardada o ``DEFAULT_SELLER_PERMISSIONS``
    - otro rol: nada permitido (el rechazo se decide en ``gate``)
    """
    if role == ROLE_ADMIN:
        return PermissionSet.all()
    if role != ROLE_SELLER:
        return PermissionSet.none()
    try:
        row = await db.scalar(select(UserPermission).where(UserPermission.user_id == user_id))
    except SQLAlchemyError as exc:
        logger.exception("Error al leer permisos user_id=%s", user_id)
        raise Internal("Error interno del servidor") from exc
    if row is None:
        return DEFAULT_SELLER_PERMISSIONS
    return PermissionSet.from_mapping(row.permissions)


async def gate(db: AsyncSession, user_id: int, role: str, capability: Capability) -> PermissionSet:
    """Exige ``capability`` y devuelve el set resuelto para reusar en la operación."""
    if role not in KNOWN_ROLES:
        logger.info("Rol no reconocido: %s (user_id=%s)", role, user_id)
        raise Forbidden("Acceso denegado")
    perms = await resolve_permissions(db, user_id, role)
    if not perms.allows(capability):
        logger.info("Permiso %s denegado user_id=%s", capability.value, user_id)
        raise Forbidden("No tienes permisos para realizar esta acción")
    return perms
