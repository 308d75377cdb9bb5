# NG-HEADER: Nombre de archivo: config.py
# NG-HEADER: Ubicación: pos_core/config.py
# NG-HEADER: Descripción: Constantes y configuración central del backend POS.
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Configuración central del backend POS."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Carga automática de variables definidas en .env
load_dotenv()


def _as_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _expand_local(origins: list[str]) -> list[str]:
    """Duplica ``localhost``/``127.0.0.1`` para evitar errores de CORS en desarrollo."""
    out: set[str] = set()
    for o in origins:
        o = o.strip()
        if not o:
            continue
        out.add(o)
        if o.startswith("http://localhost:"):
            out.add(o.replace("http://localhost:", "http://127.0.0.1:"))
        if o.startswith("http://127.0.0.1:"):
            out.add(o.replace("http://127.0.0.1:", "http://localhost:"))
    return sorted(out)


@dataclass
class Settings:
    """Parámetros de configuración leídos de variables de entorno."""

    env: str = os.getenv("ENV", "dev")
    db_url: str = os.getenv("DB_URL", "")
    # Soporte para componer la URL si no se pasa DB_URL directamente
    db_host: str = os.getenv("DB_HOST", "localhost")
    db_port: str = os.getenv("DB_PORT", "5432")
    db_name: str = os.getenv("DB_NAME", "pos")
    db_user: str = os.getenv("DB_USER", "pos")
    db_pass: str = os.getenv("DB_PASS", "")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    # Segundos esperando una conexión libre del pool antes de fallar
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    # Tope de duración de una unidad de trabajo (venta / pago de deuda)
    tx_timeout_seconds: float = float(os.getenv("TX_TIMEOUT_SECONDS", "15"))
    # Zona horaria usada para los filtros hoy/semana/mes/año
    timezone: str = os.getenv("POS_TIMEZONE", "America/Santiago")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Token compartido con el gateway de autenticación
    internal_service_token: str = os.getenv("INTERNAL_SERVICE_TOKEN", "")
    # Sólo dev/tests: aceptar cabeceras X-User-Id / X-User-Role sin token
    trust_principal_headers: bool = _as_bool(
        os.getenv("TRUST_PRINCIPAL_HEADERS"), default=os.getenv("ENV", "dev") == "dev"
    )
    allowed_origins: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.db_url:
            # Intentar construir desde variables sueltas
            if self.db_pass:
                from urllib.parse import quote_plus as _qp
                pw_enc = _qp(self.db_pass)
            else:
                pw_enc = ""
            if self.db_user and pw_enc:
                candidate = f"postgresql+psycopg://{self.db_user}:{pw_enc}@{self.db_host}:{self.db_port}/{self.db_name}"
            elif self.db_user and self.env != "dev":
                candidate = f"postgresql+psycopg://{self.db_user}@{self.db_host}:{self.db_port}/{self.db_name}"
            else:
                candidate = ""
            if candidate:
                self.db_url = candidate
        if not self.db_url:
            if self.env == "dev":
                # Fallback amigable para no bloquear el arranque local sin Postgres
                self.db_url = "sqlite+aiosqlite:///./dev.db"
            else:
                raise RuntimeError("DB_URL debe definirse en el entorno")

        raw = os.getenv("ALLOWED_ORIGINS", "").split(",")
        origins = [o.strip() for o in raw if o.strip()]
        if self.env == "dev":
            if not origins:
                origins = ["http://localhost:5173"]
            origins = _expand_local(origins)
        elif not origins:
            raise RuntimeError(
                "En producción, ALLOWED_ORIGINS debe definir al menos un origen"
            )
        self.allowed_origins = origins

        # Fail-safe: las cabeceras de identidad sin token sólo valen en dev
        if self.env != "dev" and self.trust_principal_headers:
            logging.getLogger("pos.config").warning(
                "SEGURIDAD: TRUST_PRINCIPAL_HEADERS fue ignorado porque ENV=%s (no es 'dev')",
                self.env,
            )
            self.trust_principal_headers = False


settings = Settings()
