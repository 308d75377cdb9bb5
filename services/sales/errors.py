# NG-HEADER: Nombre de archivo: errors.py
# NG-HEADER: Ubicación: services/sales/errors.py
# NG-HEADER: Descripción: Taxonomía de errores del motor de ventas con su código HTTP.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

from decimal import Decimal


class SalesError(Exception):
    """Error de negocio con estado HTTP y código estable para el frontend."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.code, "message": self.message}


class InvalidInput(SalesError):
    status_code = 400
    code = "invalid_input"


class Forbidden(SalesError):
    status_code = 403
    code = "forbidden"


class NotFound(SalesError):
    status_code = 404
    code = "not_found"


class SaleNotFound(NotFound):
    def __init__(self, sale_id: int):
        super().__init__("Venta no encontrada")
        self.sale_id = sale_id


class ProductNotFound(NotFound):
    def __init__(self, product_id: int):
        super().__init__(f"Producto con ID {product_id} no encontrado")
        self.product_id = product_id


class InsufficientStock(SalesError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str, requested: Decimal, available: Decimal):
        super().__init__(f"Stock insuficiente para {product_name} (ID {product_id})")
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class NoOutstandingDebt(SalesError):
    status_code = 400
    code = "no_outstanding_debt"

    def __init__(self, sale_id: int):
        super().__init__("La venta no tiene deuda pendiente")
        self.sale_id = sale_id


class ConcurrentUpdate(SalesError):
    status_code = 409
    code = "concurrent_update"


class Internal(SalesError):
    status_code = 500
    code = "internal"


class UnitOfWorkTimeout(Internal):
    status_code = 504
    code = "timeout"
