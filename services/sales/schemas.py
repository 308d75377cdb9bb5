# NG-HEADER: Nombre de archivo: schemas.py
# NG-HEADER: Ubicación: services/sales/schemas.py
# NG-HEADER: Descripción: Payloads de entrada de ventas y pagos (validación Pydantic -> InvalidInput).
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import InvalidInput

logger = logging.getLogger("pos.sales")

_LEADING_INT = re.compile(r"\s*[+-]?\d+")
CENT = Decimal("0.01")
# Topes de las columnas Numeric(12, 2) y Numeric(12, 3)
MAX_MONEY = Decimal("9999999999.99")
MAX_QTY = Decimal("999999999.999")
# Columnas INTEGER de ids
MAX_ID = 2_147_483_647


def to_cents(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"monto fuera de rango: {value}") from exc


class TransferIn(BaseModel):
    titular: Optional[str] = None
    banco: Optional[str] = None


class SaleItemIn(BaseModel):
    producto_id: int = Field(gt=0, le=MAX_ID)
    cantidad: Decimal = Field(gt=0, le=MAX_QTY, decimal_places=3)
    precio: Decimal = Field(ge=0, le=MAX_MONEY)


class SaleCreate(BaseModel):
    total: Decimal = Field(ge=-MAX_MONEY, le=MAX_MONEY)
    recibido: Decimal = Field(ge=-MAX_MONEY, le=MAX_MONEY)
    cambio: Decimal = Field(ge=-MAX_MONEY, le=MAX_MONEY)
    metodo_pago: str = Field(min_length=1)
    cliente_id: Optional[int] = None
    deuda: Decimal = Field(default=Decimal("0"), le=MAX_MONEY)
    user_id: int = Field(gt=0, le=MAX_ID)
    items: list[SaleItemIn] = Field(default_factory=list)
    transfer: Optional[TransferIn] = None

    @field_validator("cliente_id", mode="before")
    @classmethod
    def _normalize_cliente_id(cls, v: Any) -> Optional[int]:
        # Como parseInt: se toma el entero inicial ("7", 7.0, "7abc" => 7). Sin entero
        # positivo la venta queda sin cliente.
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            n = int(v) if math.isfinite(v) else 0
        else:
            m = _LEADING_INT.match(str(v))
            n = int(m.group(0)) if m else 0
        if 0 < n <= MAX_ID:
            return n
        if str(v).strip() not in ("", "0"):
            logger.warning("cliente_id %r no es un id válido, venta sin cliente", v)
        return None

    @field_validator("deuda", mode="before")
    @classmethod
    def _default_deuda(cls, v: Any) -> Any:
        return 0 if v in (None, "") else v

    @field_validator("metodo_pago")
    @classmethod
    def _strip_metodo(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("metodo_pago vacío")
        return v

    @model_validator(mode="after")
    def _check_amounts(self) -> "SaleCreate":
        self.total = to_cents(self.total)
        self.recibido = to_cents(self.recibido)
        self.cambio = to_cents(self.cambio)
        self.deuda = to_cents(self.deuda)
        if self.deuda < 0:
            raise ValueError("deuda no puede ser negativa")
        if self.deuda > self.total:
            raise ValueError("deuda no puede superar el total")
        return self


class DebtPaymentIn(BaseModel):
    monto: Decimal = Field(gt=0, le=MAX_MONEY)

    @model_validator(mode="after")
    def _round(self) -> "DebtPaymentIn":
        self.monto = to_cents(self.monto)
        if self.monto <= 0:
            raise ValueError("monto debe ser > 0")
        return self


def parse_sale_payload(payload: Any) -> SaleCreate:
    try:
        return SaleCreate.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput("Datos de venta incompletos o inválidos") from exc


def parse_debt_payment(payload: Any) -> DebtPaymentIn:
    try:
        return DebtPaymentIn.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput("Monto inválido") from exc
