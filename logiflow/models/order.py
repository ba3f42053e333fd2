"""Order model - the fulfilment document moved across the Kanban board."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, DocumentMixin, TimestampMixin, UTCDateTime


class Order(DocumentMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    id_pedido: Mapped[str] = mapped_column(String(50), primary_key=True)
    id_interno: Mapped[str] = mapped_column(String(50), default="")
    tienda: Mapped[dict] = mapped_column(JSON, default=dict)  # {id_tienda, nombre}
    estado_actual: Mapped[str] = mapped_column(String(30), default="PENDIENTE", index=True)
    cliente: Mapped[dict] = mapped_column(JSON, default=dict)
    items: Mapped[list] = mapped_column(JSON, default=list)
    pago: Mapped[dict] = mapped_column(JSON, default=dict)
    envio: Mapped[dict] = mapped_column(JSON, default=dict)
    asignacion: Mapped[dict] = mapped_column(JSON, default=dict)
    historial: Mapped[list] = mapped_column(JSON, default=list)  # append-only
    fechas_clave: Mapped[dict] = mapped_column(JSON, default=dict)
    notas: Mapped[dict] = mapped_column(JSON, default=dict)  # {nota_pedido, observaciones_internas, motivo_anulacion}
    source: Mapped[str | None] = mapped_column(String(20), default=None)
    kommo_lead_id: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    shopify_order_id: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    fecha_creacion: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None, index=True)

    def __repr__(self) -> str:
        return f"<Order {self.id_pedido} {self.estado_actual}>"
