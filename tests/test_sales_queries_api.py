#!/usr/bin/env python
# NG-HEADER: Nombre de archivo: test_sales_queries_api.py
# NG-HEADER: Ubicación: tests/test_sales_queries_api.py
# NG-HEADER: Descripción: Listado y detalle de ventas con visibilidad por rol y filtros de tiempo.
# NG-HEADER: Lineamientos: Ver DESIGN.md
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from db.models import utcnow_naive

pytestmark = pytest.mark.asyncio

ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}
SELLER = {"X-User-Id": "2", "X-User-Role": "vendedor"}


async def test_admin_sees_all_newest_first(client, seed):
    base = utcnow_naive() - timedelta(hours=3)
    s1 = await seed.sale(user_id=1, fecha=base)
    s2 = await seed.sale(user_id=2, fecha=base + timedelta(hours=1))
    s3 = await seed.sale(user_id=2, fecha=base + timedelta(hours=2))
    r = await client.get("/sales", headers=ADMIN)
    assert r.status_code == 200, r.text
    assert [s["id"] for s in r.json()] == [s3, s2, s1]


async def test_seller_sees_only_own_sales(client, seed):
    await seed.sale(user_id=1)
    own = await seed.sale(user_id=2)
    r = await client.get("/sales", headers=SELLER)
    assert r.status_code == 200, r.text
    assert [s["id"] for s in r.json()] == [own]


async def test_list_is_enriched_with_names(client, seed):
    await seed.customer(7, nombre="Ana", rut="11.111.111-1")
    await seed.user(2, rol="vendedor", nombre="Pedro")
    await seed.sale(user_id=2, total=80, deuda=20, cliente_id=7)
    await seed.sale(user_id=2, cliente_id=404)
    r = await client.get("/sales", headers=ADMIN)
    assert r.status_code == 200, r.text
    rows = {s["cliente_id"]: s for s in r.json()}
    assert rows[7]["cliente_nombre"] == "Ana"
    assert rows[7]["cliente_rut"] == "11.111.111-1"
    assert rows[7]["user_nombre"] == "Pedro"
    assert rows[7]["total"] == 80
    assert rows[7]["deuda"] == 20
    # Cliente inexistente: la venta se lista igual, sin nombre
    assert rows[404]["cliente_nombre"] is None


async def test_today_filter(client, seed):
    recent = await seed.sale(user_id=1)
    await seed.sale(user_id=1, fecha=datetime(2020, 5, 1, 12, 0))
    for filtro in ("today", "hoy"):
        r = await client.get("/sales", params={"filtro": filtro}, headers=ADMIN)
        assert r.status_code == 200, r.text
        assert [s["id"] for s in r.json()] == [recent]


async def test_year_filter_excludes_previous_years(client, seed):
    recent = await seed.sale(user_id=2)
    await seed.sale(user_id=2, fecha=datetime(2019, 1, 10, 12, 0))
    r = await client.get("/sales", params={"filtro": "year"}, headers=SELLER)
    assert r.status_code == 200, r.text
    assert [s["id"] for s in r.json()] == [recent]


async def test_unknown_filter_is_400(client):
    r = await client.get("/sales", params={"filtro": "quincena"}, headers=ADMIN)
    assert r.status_code == 400, r.text
    assert r.json()["error"] == "invalid_input"


async def test_missing_identity_is_401(client):
    r = await client.get("/sales")
    assert r.status_code == 401, r.text


async def test_seller_without_view_sales_is_403(client, seed):
    await seed.permissions(2, can_create_sales=True)
    r = await client.get("/sales", headers=SELLER)
    assert r.status_code == 403, r.text


async def test_detail_joins_product_identity(client, seed):
    await seed.product(5, stock=10, name="Fertilizante")
    await seed.product(6, stock=10, name="Tijera")
    sid = await seed.sale(user_id=1, items=[(5, 2, 50), (6, "0.5", 12)])
    for path in (f"/sales/{sid}/detail", f"/sales/{sid}/detalles"):
        r = await client.get(path, headers=ADMIN)
        assert r.status_code == 200, r.text
        lines = r.json()
        assert [(li["producto_id"], li["producto_nombre"], li["sku"]) for li in lines] == [
            (5, "Fertilizante", "SKU-5"),
            (6, "Tijera", "SKU-6"),
        ]
        assert lines[1]["cantidad"] == 0.5
        assert lines[0]["venta_id"] == sid


async def test_detail_of_unknown_sale_is_empty(client):
    r = await client.get("/sales/999/detail", headers=ADMIN)
    assert r.status_code == 200, r.text
    assert r.json() == []


async def test_seller_cannot_see_other_users_detail(client, seed):
    await seed.product(5, stock=10)
    other = await seed.sale(user_id=1, items=[(5, 1, 10)])
    own = await seed.sale(user_id=2, items=[(5, 1, 10)])
    r = await client.get(f"/sales/{other}/detail", headers=SELLER)
    assert r.status_code == 200, r.text
    assert r.json() == []
    r = await client.get(f"/sales/{own}/detail", headers=SELLER)
    assert len(r.json()) == 1


async def test_sale_recorded_through_api_is_listed(client, seed):
    await seed.product(1, stock=3)
    r = await client.post("/sales", json={
        "total": 20, "recibido": 20, "cambio": 0, "metodo_pago": "efectivo",
        "user_id": 2, "items": [{"producto_id": 1, "cantidad": 2, "precio": 10}],
    }, headers=SELLER)
    assert r.status_code == 200, r.text
    r = await client.get("/sales", params={"filtro": "today"}, headers=SELLER)
    assert len(r.json()) == 1
    assert r.json()[0]["metodo_pago"] == "efectivo"


async def test_customers_with_debt(client, seed):
    await seed.customer(1, nombre="Beatriz", saldo=15)
    await seed.customer(2, nombre="Alberto", saldo="2.50")
    await seed.customer(3, nombre="Carla", saldo=0)
    for path in ("/sales/customers/with-debt", "/sales/clientes/con-deuda"):
        r = await client.get(path, headers=SELLER)
        assert r.status_code == 200, r.text
        assert [(c["nombre"], c["saldo_pendiente"]) for c in r.json()] == [("Alberto", 2.5), ("Beatriz", 15)]


async def test_customers_with_debt_requires_view_customers(client, seed):
    await seed.permissions(2, can_view_sales=True)
    r = await client.get("/sales/customers/with-debt", headers=SELLER)
    assert r.status_code == 403, r.text


async def test_internal_token_is_accepted(client, monkeypatch):
    from pos_core.config import settings

    monkeypatch.setattr(settings, "trust_principal_headers", False)
    r = await client.get("/sales", headers=ADMIN)
    assert r.status_code == 401, r.text
    r = await client.get("/sales", headers={**ADMIN, "X-Internal-Service-Token": "test-internal-token"})
    assert r.status_code == 200, r.text
