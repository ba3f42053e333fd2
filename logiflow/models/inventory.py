"""Inventory model."""

from __future__ import annotations

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, DocumentMixin, TimestampMixin


class InventoryItem(DocumentMixin, TimestampMixin, Base):
    __tablename__ = "inventory"

    sku: Mapped[str] = mapped_column(String(100), primary_key=True)
    id_producto_base: Mapped[str] = mapped_column(String(100), default="")
    nombre: Mapped[str] = mapped_column(String(255), default="")
    tienda: Mapped[str] = mapped_column(String(100), default="")
    descripcion: Mapped[str] = mapped_column(Text, default="")
    stock_actual: Mapped[int] = mapped_column(Integer, default=0)
    stock_minimo: Mapped[int] = mapped_column(Integer, default=0)
    ubicacion_almacen: Mapped[str] = mapped_column(String(100), default="")
    precios: Mapped[dict] = mapped_column(JSON, default=dict)  # {compra, venta}
    proveedor: Mapped[dict] = mapped_column(JSON, default=dict)  # {id_proveedor, nombre}
    estado: Mapped[str] = mapped_column(String(20), default="ACTIVO")
    variantes: Mapped[list] = mapped_column(JSON, default=list)
    historial_stock: Mapped[list] = mapped_column(JSON, default=list)

    @property
    def is_low_stock(self) -> bool:
        return self.stock_actual <= self.stock_minimo

    def __repr__(self) -> str:
        return f"<InventoryItem {self.sku} stock={self.stock_actual}>"
