# NG-HEADER: Nombre de archivo: api.py
# NG-HEADER: Ubicación: services/api.py
# NG-HEADER: Descripción: Aplicación FastAPI del backend POS (logging, errores, CORS, routers).
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Aplicación FastAPI principal del backend POS."""

# --- Windows psycopg async fix (no-op en otros SO) ---
import sys, asyncio
if sys.platform.startswith("win"):
    try:
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    except Exception:
        pass
# --- end fix ---

import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi import HTTPException as FastHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from pos_core.config import settings
import db.models  # noqa: F401  asegura que la metadata tenga todas las tablas
from services.sales.errors import SalesError
from .routers import health, sales

raw_level = settings.log_level or "INFO"
level_name = raw_level.strip().upper()
if level_name not in logging._nameToLevel:
    level_name = "INFO"
logger = logging.getLogger("pos")
logger.setLevel(level_name)
LOG_DIR = Path(__file__).resolve().parents[1] / "logs"
fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(fmt)

file_handler = None
try:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    # delay=True evita abrir el archivo hasta el primer log; reduce errores de locking en Windows
    file_handler = RotatingFileHandler(
        str(LOG_DIR / "backend.log"), maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8", delay=True
    )
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)
except OSError:
    # Sin permisos o directorio de sólo lectura: continuar solo con consola
    file_handler = None

logger.addHandler(stream_handler)

handlers = [h for h in (file_handler, stream_handler) if h is not None]
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).handlers = handlers
    logging.getLogger(_name).setLevel(level_name)

# `redirect_slashes=False` evita redirecciones 307 entre `/ruta` y `/ruta/`,
# lo que rompe las solicitudes *preflight* de CORS.
app = FastAPI(title="POS Ventas", redirect_slashes=False)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Registra cada solicitud y captura excepciones con un correlation-id."""
    start = time.perf_counter()
    corr = request.headers.get("x-correlation-id") or request.headers.get("x-request-id")
    if not corr:
        # id liviano: epoch-ms + pid
        corr = f"req-{int(time.time()*1000):x}-{os.getpid():x}"
    try:
        resp = await call_next(request)
    except (FastHTTPException, StarletteHTTPException):
        # Deja que FastAPI maneje HTTPException (401/403/404, etc.)
        raise
    except Exception:
        dur = (time.perf_counter() - start) * 1000
        logger.exception("EXC %s %s cid=%s (%.2fms)", request.method, request.url.path, corr, dur)
        return JSONResponse(
            {"error": "internal", "message": "Error interno del servidor"},
            status_code=500,
            headers={"X-Correlation-Id": corr},
        )
    dur = (time.perf_counter() - start) * 1000
    resp.headers["X-Correlation-Id"] = corr
    logger.info("%s %s -> %s cid=%s (%.2fms)", request.method, request.url.path, resp.status_code, corr, dur)
    return resp


# --- Exception Handlers Específicos ---
@app.exception_handler(SalesError)
async def sales_error_handler(request: Request, exc: SalesError):  # type: ignore[override]
    """Errores de negocio: estado HTTP propio de cada clase y cuerpo ``{error, message}``."""
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):  # type: ignore[override]
    """Fallas de storage fuera de una unidad de trabajo: log completo, respuesta genérica."""
    logger.error("Error de base de datos en %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "internal", "message": "Error interno del servidor"}, status_code=500)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
    """Cuerpo o parámetros mal formados => 400 (datos corregibles por el usuario)."""
    flat = []
    for e in exc.errors():
        loc = ".".join([str(p) for p in e.get("loc", [])])
        flat.append({"loc": loc, "msg": e.get("msg", ""), "type": e.get("type", "")})
    logger.warning("Validación fallida %s %s: %s", request.method, request.url.path, flat)
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_input", "message": "Datos de entrada inválidos", "detail": flat},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(sales.router)


@app.get("/")
async def root():
    return {"message": "API de Ventas POS funcionando", "version": "1.0.0"}
