# NG-HEADER: Nombre de archivo: runserver.py
# NG-HEADER: Ubicación: services/runserver.py
# NG-HEADER: Descripción: Arranque del backend POS con Uvicorn (comando pos-server).
# NG-HEADER: Lineamientos: Ver DESIGN.md
"""Arranque del backend POS.

Uso: ``pos-server [--host H] [--port P] [--reload]``. Sin flags toma
``POS_HOST``/``POS_PORT`` y recarga automática sólo en ``ENV=dev``.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

import uvicorn

from pos_core.config import settings


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pos-server", description="Backend de ventas POS")
    p.add_argument("--host", default=os.getenv("POS_HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("POS_PORT", "4000")))
    p.add_argument("--reload", action="store_true", default=settings.env == "dev")
    p.add_argument("--no-reload", dest="reload", action="store_false")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if sys.platform.startswith("win"):
        # psycopg async no funciona con el loop Proactor
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    uvicorn.run(
        "services.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
