# NG-HEADER: Nombre de archivo: models.py
# NG-HEADER: Ubicación: db/models.py
# NG-HEADER: Descripción: Modelos ORM de productos, clientes, ventas, permisos y auditoría.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Modelos principales de la base de datos."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def utcnow_naive() -> datetime:
    """UTC sin tzinfo, como se guardan las fechas."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Product(Base):
    """Producto del catálogo. El núcleo de ventas sólo lee y descuenta ``stock``."""

    __tablename__ = "productos"
    __table_args__ = (
        UniqueConstraint("sku", name="ux_productos_sku"),
        CheckConstraint("stock >= 0", name="ck_productos_stock_no_negativo"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sku: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(200))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0)
    stock_unit: Mapped[Optional[str]] = mapped_column(String(20), default="unidad")


class Customer(Base):
    __tablename__ = "clientes"
    __table_args__ = (
        CheckConstraint("saldo_pendiente >= 0", name="ck_clientes_saldo_no_negativo"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(String(200))
    rut: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    telefono: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    saldo_pendiente: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)


class User(Base):
    """Usuario del sistema (gestionado por el módulo de autenticación)."""

    __tablename__ = "usuarios"
    __table_args__ = (
        CheckConstraint("rol IN ('admin','vendedor')", name="ck_usuarios_rol"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True)
    nombre: Mapped[Optional[str]] = mapped_column(String(100))
    rol: Mapped[str] = mapped_column(String(20), nullable=False)


class UserPermission(Base):
    """Permisos guardados por usuario (blob JSON clave -> bool)."""

    __tablename__ = "user_permissions"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    permissions: Mapped[dict] = mapped_column(JSON, default=dict)


class Sale(Base):
    __tablename__ = "ventas"
    __table_args__ = (
        CheckConstraint("deuda >= 0", name="ck_ventas_deuda_no_negativa"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    recibido: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    cambio: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    metodo_pago: Mapped[str] = mapped_column(String(30))
    # Referencia débil: el cliente puede no existir (la venta igual se registra)
    cliente_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    # Deuda pendiente de esta venta; único campo mutable tras el alta
    deuda: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    titular_transferencia: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    banco_transferencia: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fecha: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    items: Mapped[list["SaleLineItem"]] = relationship(back_populates="sale")


class SaleLineItem(Base):
    __tablename__ = "venta_detalles"

    id: Mapped[int] = mapped_column(primary_key=True)
    venta_id: Mapped[int] = mapped_column(ForeignKey("ventas.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"))
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 3))
    precio: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    # Costo del producto al momento de la venta
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    sale: Mapped["Sale"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(String(40))
    table: Mapped[str] = mapped_column(String(64))
    entity_id: Mapped[Optional[int]] = mapped_column(Integer)
    # Nota: 'metadata' es un nombre reservado en SQLAlchemy; usamos 'meta' como atributo
    # pero conservamos el nombre de columna 'metadata' a nivel de base de datos.
    meta: Mapped[Optional[dict]] = mapped_column(JSON, name="metadata")
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(default=utcnow_naive)
