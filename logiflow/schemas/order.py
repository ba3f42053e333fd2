"""Order schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..constants import Courier, OrderItemStatus, OrderStatus, PaymentMethod


class OrderItemIn(BaseModel):
    sku: str
    nombre: str
    variante: str = ""
    cantidad: int = Field(ge=1)
    precio_unitario: float = Field(ge=0)
    subtotal: float | None = None
    estado_item: OrderItemStatus = OrderItemStatus.PENDIENTE

    def as_item(self) -> dict:
        data = self.model_dump(mode="json")
        data["subtotal"] = self.precio_unitario * self.cantidad
        return data


class ClienteIn(BaseModel):
    dni: str = Field(min_length=1)
    nombres: str
    celular: str = ""
    email: str | None = None


class PagoIn(BaseModel):
    monto_total: float = Field(ge=0)
    metodo_pago_previsto: PaymentMethod = PaymentMethod.CONTRAENTREGA


class EnvioIn(BaseModel):
    direccion: str = ""
    provincia: str = "Lima"
    distrito: str = ""
    courier: Courier = Courier.INTERNO
    agencia_shalom: str | None = None
    costo_envio: float = 0


class NotasIn(BaseModel):
    nota_pedido: str = ""


class OrderConfirm(BaseModel):
    """Call-center sale confirmation (manual order or confirmed Shopify lead)."""

    id_pedido: str | None = None
    tienda: str | None = None
    cliente: ClienteIn
    items: list[OrderItemIn] = []
    pago: PagoIn
    envio: EnvioIn = EnvioIn()
    notas: NotasIn = NotasIn()
    source: str | None = None
    shopify_order_id: str | None = None


class StatusChange(BaseModel):
    estado: OrderStatus
    detalle: str | None = None
    motivo_anulacion: str | None = None


class OrderUpdate(BaseModel):
    pago: dict | None = None
    envio: dict | None = None
    notas: dict | None = None
    asignacion: dict | None = None


class OrderResponse(BaseModel):
    id_pedido: str
    id_interno: str
    tienda: dict
    estado_actual: str
    cliente: dict
    items: list[dict]
    pago: dict
    envio: dict
    asignacion: dict
    historial: list[dict]
    fechas_clave: dict
    notas: dict
    source: str | None = None
    kommo_lead_id: str | None = None
    shopify_order_id: str | None = None
    fecha_creacion: datetime | None = None

    model_config = {"from_attributes": True}
