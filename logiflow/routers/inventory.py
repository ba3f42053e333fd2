"""Inventory routes - CRUD, stock adjustments, quick entry and bulk import."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    QuickEntryLine,
    StockAdjustment,
)
from ..services import inventory_svc
from ..services.inventory_svc import InventoryImportError

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryItemResponse])
async def inventory_list(
    db: AsyncSession = Depends(get_db),
    search: str | None = None,
    tienda: str | None = None,
    low_stock: bool = False,
):
    return await inventory_svc.list_items(db, search=search, tienda=tienda, low_stock=low_stock)


@router.post("", response_model=InventoryItemResponse, status_code=201)
async def inventory_create(body: InventoryItemCreate, db: AsyncSession = Depends(get_db)):
    if await inventory_svc.get_item(db, body.sku):
        raise HTTPException(status_code=409, detail=f"SKU '{body.sku}' already exists")
    return await inventory_svc.create_item(db, **body.model_dump(mode="json"))


@router.post("/bulk-upload")
async def inventory_bulk_upload(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
):
    """Import the ``Inventario`` sheet of an .xlsx workbook (or its CSV export)."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded.")
    try:
        rows = inventory_svc.parse_inventory_file(file.filename, content)
    except InventoryImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    counts = await inventory_svc.import_rows(db, rows)
    return {"success": True, "message": "Inventario importado exitosamente.", **counts}


@router.post("/quick-entry", response_model=list[InventoryItemResponse])
async def inventory_quick_entry(lines: list[QuickEntryLine], db: AsyncSession = Depends(get_db)):
    return await inventory_svc.quick_entry(db, [line.model_dump() for line in lines])


@router.get("/{sku}", response_model=InventoryItemResponse)
async def inventory_detail(sku: str, db: AsyncSession = Depends(get_db)):
    item = await inventory_svc.get_item(db, sku)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.patch("/{sku}", response_model=InventoryItemResponse)
async def inventory_update(sku: str, body: InventoryItemUpdate, db: AsyncSession = Depends(get_db)):
    item = await inventory_svc.update_item(db, sku, **body.model_dump(mode="json", exclude_unset=True))
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.post("/{sku}/adjust", response_model=InventoryItemResponse)
async def inventory_adjust(sku: str, body: StockAdjustment, db: AsyncSession = Depends(get_db)):
    item = await inventory_svc.adjust_stock(db, sku, body.ajuste, motivo=body.motivo, tipo=body.tipo)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.delete("/{sku}")
async def inventory_delete(sku: str, db: AsyncSession = Depends(get_db)):
    if not await inventory_svc.delete_item(db, sku):
        raise HTTPException(status_code=404, detail="Item not found")
    return {"deleted": True}
