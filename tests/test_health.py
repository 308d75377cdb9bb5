#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: test_health.py
# NG-HEADER: Ubicación: tests/test_health.py
# NG-HEADER: Descripción: Healthchecks de liveness y conectividad a la base.
# NG-HEADER: Lineamientos: Ver DESIGN.md
import pytest

pytestmark = pytest.mark.asyncio


async def test_health_root(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


async def test_health_db(client):
    r = await client.get("/health/db")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "OK"
    assert body["database"] == "Connected"
    assert "timestamp" in body


async def test_correlation_id_is_echoed(client):
    r = await client.get("/health", headers={"X-Correlation-Id": "abc-123"})
    assert r.headers["X-Correlation-Id"] == "abc-123"
    r = await client.get("/")
    assert r.headers["X-Correlation-Id"].startswith("req-")
