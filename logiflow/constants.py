"""Domain vocabularies shared by models, schemas and services."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    EN_PREPARACION = "EN_PREPARACION"
    EN_TRANSITO_LIMA = "EN_TRANSITO_LIMA"
    EN_TRANSITO_PROVINCIA = "EN_TRANSITO_PROVINCIA"
    ENTREGADO = "ENTREGADO"
    ANULADO = "ANULADO"
    RETENIDO = "RETENIDO"


class PaymentStatus(str, Enum):
    PENDIENTE = "PENDIENTE"
    PAGADO = "PAGADO"


class PaymentMethod(str, Enum):
    CONTRAENTREGA = "CONTRAENTREGA"
    YAPE = "YAPE"
    PLIN = "PLIN"
    TRANSFERENCIA = "TRANSFERENCIA"
    TARJETA = "Tarjeta de Crédito"
    EFECTIVO = "Efectivo"
    TRANSFERENCIA_BANCARIA = "Transferencia Bancaria"
    DESCONOCIDO = "Desconocido"


class ShippingType(str, Enum):
    LIMA = "LIMA"
    PROVINCIA = "PROVINCIA"


class Courier(str, Enum):
    URBANO = "URBANO"
    SHALOM = "SHALOM"
    OLVA = "OLVA"
    INTERNO = "INTERNO"


class OrderItemStatus(str, Enum):
    CONFIRMADO = "CONFIRMADO"
    SIN_STOCK = "SIN_STOCK"
    BACKORDER = "BACKORDER"
    PENDIENTE = "PENDIENTE"


class InventoryStatus(str, Enum):
    ACTIVO = "ACTIVO"
    DESCONTINUADO = "DESCONTINUADO"
    SIN_STOCK = "SIN_STOCK"


class StockHistoryType(str, Enum):
    ENTRADA = "ENTRADA"
    SALIDA = "SALIDA"
    AJUSTE = "AJUSTE"


class UserRole(str, Enum):
    CALL_CENTER = "Call Center"
    LOGISTICA = "Logistica"
    EMPACADO = "Empacado"
    DESARROLLADORES = "Desarrolladores"
    MARKETING = "Marketing"
    JEFATURA = "Jefatura"
    ADMIN = "Admin"


class CallStatus(str, Enum):
    NUEVO = "NUEVO"
    CONTACTADO = "CONTACTADO"
    NO_CONTESTA = "NO_CONTESTA"
    NUMERO_EQUIVOCADO = "NUMERO_EQUIVOCADO"
    EN_SEGUIMIENTO = "EN_SEGUIMIENTO"
    VENTA_CONFIRMADA = "VENTA_CONFIRMADA"
    HIBERNACION = "HIBERNACION"
    INTENTO_1 = "INTENTO_1"
    INTENTO_2 = "INTENTO_2"
    INTENTO_3 = "INTENTO_3"
    INTENTO_4 = "INTENTO_4"
    LEAD_NO_CONTACTABLE = "LEAD_NO_CONTACTABLE"
    LEAD_PERDIDO = "LEAD_PERDIDO"


class LeadSource(str, Enum):
    MANUAL = "manual"
    SHOPIFY = "shopify"
    KOMMO = "kommo"


class WebhookEvent(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    STOCK_CONFIRMED = "STOCK_CONFIRMED"
    ORDER_CANCELLED = "ORDER_CANCELLED"


# Leads in these states have left the call-center queue
TERMINAL_CALL_STATUSES = frozenset({CallStatus.VENTA_CONFIRMADA.value, CallStatus.HIBERNACION.value})

KANBAN_COLUMNS = [
    OrderStatus.PENDIENTE,
    OrderStatus.EN_PREPARACION,
    OrderStatus.EN_TRANSITO_LIMA,
    OrderStatus.EN_TRANSITO_PROVINCIA,
    OrderStatus.ENTREGADO,
    OrderStatus.RETENIDO,
    OrderStatus.ANULADO,
]

# Key date stamped in fechas_clave when an order enters a status
STATUS_KEY_DATES = {
    OrderStatus.EN_PREPARACION: "preparacion",
    OrderStatus.EN_TRANSITO_LIMA: "despacho",
    OrderStatus.EN_TRANSITO_PROVINCIA: "despacho",
    OrderStatus.ENTREGADO: "entrega_real",
    OrderStatus.ANULADO: "anulacion",
}

DEFAULT_PERMISSIONS = {
    "puede_crear_pedido": False,
    "puede_preparar": False,
    "puede_despachar": False,
    "puede_confirmar_entrega": False,
    "puede_anular": False,
    "puede_gestionar_inventario": False,
    "puede_ver_reportes": False,
}

ADMIN_PERMISSIONS = {
    **{key: True for key in DEFAULT_PERMISSIONS},
    "puede_ver": {
        "pedidos": True,
        "call_center": True,
        "procesar_pedido": True,
        "clientes": True,
        "inventario": True,
        "reportes": True,
        "staff": True,
    },
}
