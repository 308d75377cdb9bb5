# NG-HEADER: Nombre de archivo: __init__.py
# NG-HEADER: Ubicación: services/sales/__init__.py
# NG-HEADER: Descripción: Motor de transacciones de venta (alta, stock, deuda, consultas).
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Motor de ventas.

- ``permissions``: resolución de permisos por rol/usuario
- ``inventory``: descuento condicional de stock
- ``recorder``: alta atómica de venta + detalle + deuda
- ``debt``: pagos parciales de deuda
- ``queries``: listados y detalle con visibilidad por rol
"""
