"""Inventory tests: CRUD, stock adjustments and sheet import."""

from __future__ import annotations

import io

import pytest
from httpx import AsyncClient
from openpyxl import Workbook

from logiflow.services.inventory_svc import (
    InventoryImportError,
    parse_inventory_csv,
    parse_inventory_workbook,
    row_to_fields,
)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHEET = (
    "sku,nombre,descripcion,stock_actual,stock_minimo,precios.compra,precios.venta,tienda,"
    "proveedor.id_proveedor,proveedor.nombre,ubicacion_almacen\n"
    "SKU-0001,Serum Vitamina C,30ml,40,10,25,59.9,Blumi,PR-1,Distribuidora Sur,A-01\n"
    "SKU-0002,Mochila 40L,,15,5,90,189,Cumbre,,,B-02\n"
    ",Fila sin SKU,,1,1,1,1,Blumi,,,\n"
)


def _workbook(title: str = "Inventario") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(["sku", "nombre", "stock_actual", "stock_minimo", "precios.compra", "precios.venta", "tienda"])
    ws.append(["SKU-0101", "Crema Facial", 12, 3, 18.5, 45, "Blumi"])
    ws.append([None, None, None, None, None, None, None])
    ws.append([None, "Sin SKU", 1, 1, 1, 1, "Blumi"])
    ws.append(["SKU-0102", "Linterna LED", 4, 5, 20, 49.9, "Trazto"])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestSheetParsing:
    def test_rows_and_fields(self):
        rows = parse_inventory_csv(SHEET.encode("utf-8-sig"))
        assert len(rows) == 3
        fields = row_to_fields(rows[0])
        assert fields["precios"] == {"compra": 25.0, "venta": 59.9}
        assert fields["proveedor"] == {"id_proveedor": "PR-1", "nombre": "Distribuidora Sur"}
        assert fields["stock_actual"] == 40

    def test_defaults_for_blank_cells(self):
        fields = row_to_fields({"sku": "X", "tienda": "Desconocida", "stock_actual": "abc"})
        assert fields["nombre"] == "Nombre no especificado"
        assert fields["stock_actual"] == 0
        assert fields["tienda"] == "Blumi"
        assert fields["proveedor"]["nombre"] == "N/A"

    def test_sku_column_required(self):
        with pytest.raises(InventoryImportError):
            parse_inventory_csv(b"nombre,stock_actual\nA,1\n")

    def test_workbook_rows(self):
        rows = parse_inventory_workbook(_workbook())
        assert [row.get("sku") for row in rows] == ["SKU-0101", None, "SKU-0102"]
        fields = row_to_fields(rows[0])
        assert fields["stock_actual"] == 12
        assert fields["precios"] == {"compra": 18.5, "venta": 45.0}

    def test_workbook_requires_inventario_sheet(self):
        with pytest.raises(InventoryImportError, match="Inventario"):
            parse_inventory_workbook(_workbook(title="Hoja1"))


@pytest.mark.asyncio
async def test_bulk_upload_creates_and_updates(client: AsyncClient):
    files = {"file": ("Inventario.csv", SHEET.encode("utf-8"), "text/csv")}
    resp = await client.post("/api/inventory/bulk-upload", files=files)
    assert resp.status_code == 200
    assert resp.json()["created"] == 2
    assert resp.json()["skipped"] == 1

    changed = SHEET.replace("SKU-0002,Mochila 40L,,15", "SKU-0002,Mochila 40L,,7")
    resp = await client.post("/api/inventory/bulk-upload", files={"file": ("Inventario.csv", changed.encode(), "text/csv")})
    assert resp.json()["created"] == 0
    assert resp.json()["updated"] == 2

    item = (await client.get("/api/inventory/SKU-0002")).json()
    assert item["stock_actual"] == 7
    assert item["tienda"] == "Cumbre"


@pytest.mark.asyncio
async def test_bulk_upload_rejects_sheet_without_sku(client: AsyncClient):
    files = {"file": ("x.csv", b"nombre\nA\n", "text/csv")}
    resp = await client.post("/api/inventory/bulk-upload", files=files)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_crud_and_adjustments(client: AsyncClient):
    resp = await client.post("/api/inventory", json={"sku": "SKU-1", "nombre": "Polo", "stock_actual": 3, "stock_minimo": 5})
    assert resp.status_code == 201
    assert (await client.post("/api/inventory", json={"sku": "SKU-1", "nombre": "Dup"})).status_code == 409

    low = (await client.get("/api/inventory", params={"low_stock": True})).json()
    assert [i["sku"] for i in low] == ["SKU-1"]

    resp = await client.post("/api/inventory/SKU-1/adjust", json={"ajuste": 10, "motivo": "Compra"})
    item = resp.json()
    assert item["stock_actual"] == 13
    assert item["historial_stock"][-1]["tipo"] == "ENTRADA"
    assert item["historial_stock"][-1]["cantidad"] == 10

    item = (await client.post("/api/inventory/SKU-1/adjust", json={"ajuste": -4})).json()
    assert item["stock_actual"] == 9
    assert item["historial_stock"][-1]["tipo"] == "SALIDA"

    resp = await client.patch("/api/inventory/SKU-1", json={"precios": {"compra": 20, "venta": 45}})
    assert resp.json()["precios"]["venta"] == 45

    assert (await client.delete("/api/inventory/SKU-1")).status_code == 200
    assert (await client.get("/api/inventory/SKU-1")).status_code == 404
    assert (await client.post("/api/inventory/SKU-1/adjust", json={"ajuste": 1})).status_code == 404


@pytest.mark.asyncio
async def test_quick_entry_creates_unknown_skus(client: AsyncClient):
    await client.post("/api/inventory", json={"sku": "SKU-1", "nombre": "Polo", "stock_actual": 2})
    resp = await client.post(
        "/api/inventory/quick-entry",
        json=[{"sku": "SKU-1", "ajuste": 3}, {"sku": "SKU-NEW", "ajuste": 4, "nombre": "Gorra"}],
    )
    assert resp.status_code == 200
    stock = {i["sku"]: i["stock_actual"] for i in resp.json()}
    assert stock == {"SKU-1": 5, "SKU-NEW": 4}
    new = (await client.get("/api/inventory/SKU-NEW")).json()
    assert new["nombre"] == "Gorra"
    assert new["historial_stock"][0]["motivo"] == "Ingreso rápido"


@pytest.mark.asyncio
async def test_bulk_upload_reads_xlsx_workbook(client: AsyncClient):
    files = {"file": ("inventario.xlsx", _workbook(), XLSX)}
    resp = await client.post("/api/inventory/bulk-upload", files=files)
    assert resp.status_code == 200, resp.text
    assert resp.json()["created"] == 2
    assert resp.json()["skipped"] == 1

    item = (await client.get("/api/inventory/SKU-0102")).json()
    assert item["stock_actual"] == 4
    assert item["tienda"] == "Trazto"


@pytest.mark.asyncio
async def test_bulk_upload_workbook_without_inventario_sheet_is_400(client: AsyncClient):
    files = {"file": ("inventario.xlsx", _workbook(title="Hoja1"), XLSX)}
    resp = await client.post("/api/inventory/bulk-upload", files=files)
    assert resp.status_code == 400
    assert "Inventario" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_bulk_upload_unreadable_workbook_is_400(client: AsyncClient):
    files = {"file": ("inventario.xlsx", b"not a workbook", XLSX)}
    resp = await client.post("/api/inventory/bulk-upload", files=files)
    assert resp.status_code == 400
