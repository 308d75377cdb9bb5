# NG-HEADER: Nombre de archivo: base.py
# NG-HEADER: Ubicación: db/base.py
# NG-HEADER: Descripción: Declaración base de SQLAlchemy para los modelos ORM.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Declarative base para los modelos."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
