"""Inventory service - CRUD, stock adjustments and spreadsheet import."""

from __future__ import annotations

import csv
import io
import logging
import uuid
import zipfile
from datetime import datetime, timezone
from typing import Any, Iterable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..constants import StockHistoryType
from ..models.inventory import InventoryItem

log = logging.getLogger(__name__)

IMPORT_COLUMNS = (
    "sku",
    "nombre",
    "descripcion",
    "stock_actual",
    "stock_minimo",
    "precios.compra",
    "precios.venta",
    "tienda",
    "proveedor.id_proveedor",
    "proveedor.nombre",
    "ubicacion_almacen",
)


class InventoryImportError(ValueError):
    """The uploaded file cannot be read as an inventory sheet."""


def _new_product_base_id() -> str:
    return f"P-{int(datetime.now(timezone.utc).timestamp() * 1000)}-{uuid.uuid4().hex[:5]}"


def _number(value: Any) -> float:
    try:
        return float(str(value).strip()) if value not in (None, "") else 0.0
    except ValueError:
        return 0.0


def _text(value: Any, default: str = "") -> str:
    text = str(value).strip() if value is not None else ""
    return text or default


async def list_items(
    db: AsyncSession,
    *,
    search: str | None = None,
    tienda: str | None = None,
    low_stock: bool = False,
) -> list[InventoryItem]:
    stmt = select(InventoryItem)
    if search:
        q = f"%{search}%"
        stmt = stmt.where(or_(InventoryItem.sku.ilike(q), InventoryItem.nombre.ilike(q)))
    if tienda:
        stmt = stmt.where(InventoryItem.tienda == tienda)
    if low_stock:
        stmt = stmt.where(InventoryItem.stock_actual <= InventoryItem.stock_minimo)
    stmt = stmt.order_by(InventoryItem.nombre)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_item(db: AsyncSession, sku: str) -> InventoryItem | None:
    return await db.get(InventoryItem, sku)


async def get_items(db: AsyncSession, skus: Iterable[str]) -> dict[str, InventoryItem]:
    skus = list(set(skus))
    if not skus:
        return {}
    result = await db.execute(select(InventoryItem).where(InventoryItem.sku.in_(skus)))
    return {item.sku: item for item in result.scalars().all()}


async def create_item(db: AsyncSession, **kwargs) -> InventoryItem:
    kwargs.setdefault("id_producto_base", _new_product_base_id())
    item = InventoryItem(**kwargs)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def update_item(db: AsyncSession, sku: str, **kwargs) -> InventoryItem | None:
    item = await get_item(db, sku)
    if not item:
        return None
    for key, value in kwargs.items():
        setattr(item, key, value)
    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, sku: str) -> bool:
    item = await get_item(db, sku)
    if not item:
        return False
    await db.delete(item)
    await db.commit()
    return True


def _stock_entry(delta: int, motivo: str, tipo: StockHistoryType | None = None) -> dict:
    if tipo is None:
        tipo = StockHistoryType.ENTRADA if delta >= 0 else StockHistoryType.SALIDA
    return {
        "fecha": datetime.now(timezone.utc).isoformat(),
        "tipo": StockHistoryType(tipo).value,
        "cantidad": abs(delta),
        "motivo": motivo,
    }


async def adjust_stock(
    db: AsyncSession,
    sku: str,
    ajuste: int,
    *,
    motivo: str = "Ajuste manual",
    tipo: StockHistoryType | None = None,
    commit: bool = True,
) -> InventoryItem | None:
    """Add ``ajuste`` (may be negative) to the stock and log it in ``historial_stock``."""
    item = await get_item(db, sku)
    if not item:
        return None
    item.stock_actual = (item.stock_actual or 0) + ajuste
    item.historial_stock = [*(item.historial_stock or []), _stock_entry(ajuste, motivo, tipo)]
    if commit:
        await db.commit()
        await db.refresh(item)
    return item


async def quick_entry(db: AsyncSession, entries: list[dict]) -> list[InventoryItem]:
    """Batch stock entry by SKU; unknown SKUs are created as new products."""
    touched = []
    for entry in entries:
        sku = _text(entry.get("sku"))
        ajuste = int(entry.get("ajuste") or 0)
        if not sku:
            continue
        item = await get_item(db, sku)
        if item is None:
            item = InventoryItem(
                sku=sku,
                id_producto_base=_new_product_base_id(),
                nombre=_text(entry.get("nombre"), "Nuevo Producto"),
                tienda=settings.shop_names[0] if settings.shop_names else "",
                stock_actual=0,
                historial_stock=[],
                variantes=[],
            )
            db.add(item)
            await db.flush()
        await adjust_stock(db, sku, ajuste, motivo="Ingreso rápido", commit=False)
        touched.append(item)
    await db.commit()
    for item in touched:
        await db.refresh(item)
    return touched


# ── Spreadsheet import ─────────────────────────────────────────────────


INVENTORY_SHEET = "Inventario"


def _is_xlsx(filename: str | None, content: bytes) -> bool:
    return (filename or "").lower().endswith(".xlsx") or content[:4] == b"PK\x03\x04"


def parse_inventory_file(filename: str | None, content: bytes) -> list[dict[str, Any]]:
    """Rows of an uploaded inventory sheet: an .xlsx workbook, or its CSV export."""
    if _is_xlsx(filename, content):
        return parse_inventory_workbook(content)
    return parse_inventory_csv(content)


def parse_inventory_workbook(content: bytes) -> list[dict[str, Any]]:
    """Rows of the ``Inventario`` sheet of an .xlsx workbook (header row first)."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise InventoryImportError("No se pudo leer el archivo Excel.") from e
    try:
        if INVENTORY_SHEET not in workbook.sheetnames:
            raise InventoryImportError(f'La hoja de cálculo debe llamarse "{INVENTORY_SHEET}".')
        rows = workbook[INVENTORY_SHEET].iter_rows(values_only=True)
        header = [str(cell).strip() if cell is not None else "" for cell in next(rows, ())]
        if "sku" not in header:
            raise InventoryImportError("El archivo debe tener una columna 'sku'.")
        return [
            {name: value for name, value in zip(header, row) if name}
            for row in rows
            if any(value is not None for value in row)
        ]
    finally:
        workbook.close()


def parse_inventory_csv(content: bytes) -> list[dict[str, str]]:
    """Rows of an exported ``Inventario`` sheet (CSV, header row required)."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or "sku" not in [f.strip() for f in reader.fieldnames]:
        raise InventoryImportError("El archivo debe tener una columna 'sku'.")
    return [{(k or "").strip(): v for k, v in row.items()} for row in reader]


def row_to_fields(row: dict[str, Any]) -> dict[str, Any]:
    shops = settings.shop_names
    tienda = _text(row.get("tienda"))
    return {
        "nombre": _text(row.get("nombre"), "Nombre no especificado"),
        "descripcion": _text(row.get("descripcion")),
        "stock_actual": int(_number(row.get("stock_actual"))),
        "stock_minimo": int(_number(row.get("stock_minimo"))),
        "precios": {
            "compra": _number(row.get("precios.compra")),
            "venta": _number(row.get("precios.venta")),
        },
        "tienda": tienda if tienda in shops else (shops[0] if shops else tienda),
        "proveedor": {
            "id_proveedor": _text(row.get("proveedor.id_proveedor"), "N/A"),
            "nombre": _text(row.get("proveedor.nombre"), "N/A"),
        },
        "ubicacion_almacen": _text(row.get("ubicacion_almacen")),
    }


async def import_rows(db: AsyncSession, rows: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Upsert inventory rows by SKU in one transaction. Rows without SKU are skipped."""
    created = updated = skipped = 0
    for row in rows:
        sku = _text(row.get("sku"))
        if not sku:
            log.warning("Inventory row skipped: SKU missing")
            skipped += 1
            continue
        fields = row_to_fields(row)
        item = await get_item(db, sku)
        if item:
            for key, value in fields.items():
                setattr(item, key, value)
            updated += 1
        else:
            db.add(InventoryItem(
                sku=sku,
                id_producto_base=_new_product_base_id(),
                estado="ACTIVO",
                variantes=[],
                historial_stock=[],
                **fields,
            ))
            await db.flush()
            created += 1
    await db.commit()
    log.info("Inventory import: %d created, %d updated, %d skipped", created, updated, skipped)
    return {"created": created, "updated": updated, "skipped": skipped}
