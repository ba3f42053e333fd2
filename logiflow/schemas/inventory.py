"""Inventory schemas."""

from __future__ import annotations

from pydantic import BaseModel

from ..constants import InventoryStatus, StockHistoryType


class Precios(BaseModel):
    compra: float = 0
    venta: float = 0


class Proveedor(BaseModel):
    id_proveedor: str = "N/A"
    nombre: str = "N/A"


class InventoryItemCreate(BaseModel):
    sku: str
    nombre: str
    tienda: str = ""
    descripcion: str = ""
    stock_actual: int = 0
    stock_minimo: int = 0
    ubicacion_almacen: str = ""
    precios: Precios = Precios()
    proveedor: Proveedor = Proveedor()
    estado: InventoryStatus = InventoryStatus.ACTIVO


class InventoryItemUpdate(BaseModel):
    nombre: str | None = None
    tienda: str | None = None
    descripcion: str | None = None
    stock_minimo: int | None = None
    ubicacion_almacen: str | None = None
    precios: Precios | None = None
    proveedor: Proveedor | None = None
    estado: InventoryStatus | None = None


class StockAdjustment(BaseModel):
    ajuste: int
    motivo: str = "Ajuste manual"
    tipo: StockHistoryType | None = None


class QuickEntryLine(BaseModel):
    sku: str
    ajuste: int
    nombre: str | None = None


class InventoryItemResponse(InventoryItemCreate):
    id_producto_base: str
    estado: str
    variantes: list[dict] = []
    historial_stock: list[dict] = []

    model_config = {"from_attributes": True}
