"""Order service - creation, Kanban status flow, stock check and filters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..constants import (
    KANBAN_COLUMNS,
    STATUS_KEY_DATES,
    CallStatus,
    InventoryStatus,
    OrderItemStatus,
    OrderStatus,
    WebhookEvent,
)
from ..ingestion import kommo
from ..ingestion.decode import KommoLeadPayload
from ..ingestion.shopify import to_float
from ..models.lead import Client, ShopifyLead
from ..models.order import Order
from ..models.user import StaffUser
from . import document_svc, inventory_svc

log = logging.getLogger(__name__)

ESTIMATED_DELIVERY_DAYS = 3


@dataclass
class Actor:
    """Who performed an action, as recorded in the order history."""

    id_usuario: str = "SYSTEM"
    nombre: str = "Sistema"
    rol: str | None = None


KOMMO_ACTOR = Actor(id_usuario="SYSTEM_KOMMO", nombre="Kommo Webhook")


@dataclass
class OrderFilters:
    shops: list[str] = field(default_factory=list)
    assigned_user_ids: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    payment_methods: list[str] = field(default_factory=list)
    couriers: list[str] = field(default_factory=list)
    date_from: date | None = None
    date_to: date | None = None


class OrderError(ValueError):
    """A requested order transition is not possible."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def history_entry(actor: Actor, accion: str, detalle: str) -> dict:
    return {
        "fecha": _now().isoformat(),
        "id_usuario": actor.id_usuario,
        "nombre_usuario": actor.nombre,
        "accion": accion,
        "detalle": detalle,
    }


def _append_history(order: Order, entry: dict) -> None:
    # JSON columns are reassigned so the change is flushed
    order.historial = [*(order.historial or []), entry]


def shipping_type(provincia: str | None) -> str:
    return "LIMA" if (provincia or "").strip().lower() == "lima" else "PROVINCIA"


def status_event(status: OrderStatus | str) -> WebhookEvent:
    if OrderStatus(status) is OrderStatus.ANULADO:
        return WebhookEvent.ORDER_CANCELLED
    return WebhookEvent.ORDER_STATUS_CHANGED


# ── Queries ────────────────────────────────────────────────────────────


async def get_order(db: AsyncSession, order_id: str) -> Order | None:
    return await db.get(Order, order_id)


def matches_filters(order: Order, filters: OrderFilters) -> bool:
    if filters.statuses and order.estado_actual not in filters.statuses:
        return False
    if filters.shops and (order.tienda or {}).get("nombre") not in filters.shops:
        return False
    if filters.assigned_user_ids and (order.asignacion or {}).get("id_usuario_actual") not in filters.assigned_user_ids:
        return False
    if filters.payment_methods and (order.pago or {}).get("metodo_pago_previsto") not in filters.payment_methods:
        return False
    if filters.couriers and (order.envio or {}).get("courier") not in filters.couriers:
        return False
    if filters.date_from or filters.date_to:
        created = order.fecha_creacion or order.created_at
        if created is None:
            return False
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        # Calendar days are the shop's local days
        day = created.astimezone(ZoneInfo(settings.timezone)).date()
        if filters.date_from and day < filters.date_from:
            return False
        if filters.date_to and day > filters.date_to:
            return False
    return True


async def list_orders(db: AsyncSession, filters: OrderFilters | None = None) -> list[Order]:
    """All orders newest first, narrowed by the dashboard filters."""
    filters = filters or OrderFilters()
    stmt = select(Order)
    if filters.statuses:
        stmt = stmt.where(Order.estado_actual.in_(filters.statuses))
    stmt = stmt.order_by(Order.fecha_creacion.desc(), Order.id_pedido.desc())
    result = await db.execute(stmt)
    return [o for o in result.scalars().all() if matches_filters(o, filters)]


def group_board(orders: list[Order]) -> dict[str, list[Order]]:
    """Kanban columns in display order; every column is present."""
    board: dict[str, list[Order]] = {status.value: [] for status in KANBAN_COLUMNS}
    for order in orders:
        board.setdefault(order.estado_actual, []).append(order)
    return board


# ── Creation ───────────────────────────────────────────────────────────


async def _next_kommo_ids(db: AsyncSession) -> tuple[str, str]:
    count = (await db.execute(select(func.count()).select_from(Order))).scalar() or 0
    year = _now().year
    n = count + 1
    while await db.get(Order, f"PED-{year}-{n:05d}") is not None:
        n += 1
    return f"PED-{year}-{n:05d}", f"INT-{n:05d}"


async def create_from_kommo(db: AsyncSession, payload: KommoLeadPayload) -> Order:
    """Open a PENDIENTE order for a Kommo lead; items are added later."""
    lead = payload.lead
    contacts = payload.related_contacts
    if not lead and not contacts:
        raise OrderError("No valid lead or contact data found in payload.")

    order_id, internal_id = await _next_kommo_ids(db)
    total = to_float(lead.get("price"))
    first_user = (await db.execute(select(StaffUser).order_by(StaffUser.created_at).limit(1))).scalar_one_or_none()
    now = _now()
    cliente = kommo.build_order_cliente(lead, contacts)

    order = Order(
        id_pedido=order_id,
        id_interno=internal_id,
        tienda={"id_tienda": "KOMMO-01", "nombre": "Marketplace"},
        estado_actual=OrderStatus.PENDIENTE.value,
        cliente=cliente,
        items=[],
        pago={
            "monto_total": total,
            "monto_pendiente": total,
            "metodo_pago_previsto": "Transferencia Bancaria",
            "estado_pago": "PENDIENTE",
            "comprobante_url": None,
            "fecha_pago": None,
        },
        envio={
            "tipo": "LIMA",
            "provincia": "Lima",
            "distrito": cliente.get("distrito") or "",
            "direccion": cliente.get("direccion") or "Dirección a definir",
            "courier": "INTERNO",
            "agencia_shalom": None,
            "nro_guia": None,
            "link_seguimiento": None,
            "costo_envio": 0,
        },
        asignacion={
            "id_usuario_actual": first_user.id_usuario if first_user else "default_user",
            "nombre_usuario_actual": first_user.nombre if first_user else "Sistema",
        },
        historial=[history_entry(KOMMO_ACTOR, "Creación de Pedido", "Pedido creado automáticamente desde Kommo.")],
        fechas_clave={
            "creacion": now.isoformat(),
            "confirmacion_llamada": None,
            "procesamiento_iniciado": None,
            "preparacion": None,
            "despacho": None,
            "entrega_estimada": (now + timedelta(days=ESTIMATED_DELIVERY_DAYS)).isoformat(),
            "entrega_real": None,
            "anulacion": None,
        },
        notas={
            "nota_pedido": f"Pedido creado desde Kommo. Lead ID: {lead.get('id') or 'N/A'}",
            "observaciones_internas": "",
            "motivo_anulacion": None,
        },
        source="kommo",
        kommo_lead_id=str(lead["id"]) if lead.get("id") is not None else None,
        fecha_creacion=now,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    log.info("Order %s created from Kommo lead %s", order_id, lead.get("id"))
    return order


async def confirm_sale(db: AsyncSession, data: dict[str, Any], actor: Actor) -> tuple[Order, bool]:
    """Call-center confirmation: merge the client, mark the lead sold, write the order.

    ``data`` follows ``OrderConfirm``. With ``id_pedido`` set, the existing
    order (e.g. a Shopify order loaded into the form) is updated in place.
    Returns (order, created).
    """
    now = _now()
    cliente = data["cliente"]
    envio = data["envio"]
    pago = data["pago"]
    dni = cliente["dni"]
    existing = await db.get(Order, data["id_pedido"]) if data.get("id_pedido") else None
    source = data.get("source") or (existing.source if existing else None) or "manual"

    await document_svc.upsert_document(
        db, Client, dni,
        {
            "dni": dni,
            "nombres": cliente["nombres"],
            "celular": cliente.get("celular") or "",
            "direccion": envio.get("direccion") or "",
            "distrito": envio.get("distrito") or "",
            "provincia": envio.get("provincia") or "Lima",
            "source": source,
            "call_status": CallStatus.VENTA_CONFIRMADA.value,
            "last_updated": now,
        },
        on_create={"first_interaction_at": now},
        commit=False,
    )

    shopify_order_id = data.get("shopify_order_id") or (existing.shopify_order_id if existing else None)
    if shopify_order_id:
        lead = await db.get(ShopifyLead, str(shopify_order_id))
        if lead:
            lead.call_status = CallStatus.VENTA_CONFIRMADA.value
            lead.last_updated = now

    tienda = data.get("tienda") or "Trazto"
    accion = "Pedido de Shopify Confirmado" if existing else "Pedido Manual Creado"
    detalle = f"Pedido procesado por {actor.rol or actor.nombre}."
    fields = {
        "tienda": {"id_tienda": tienda, "nombre": tienda},
        "estado_actual": OrderStatus.EN_PREPARACION.value,
        "cliente": {
            "id_cliente": dni,
            "dni": dni,
            "nombres": cliente["nombres"],
            "celular": cliente.get("celular") or "",
            "email": cliente.get("email"),
        },
        "items": data.get("items") or [],
        "pago": {
            "monto_total": pago["monto_total"],
            "monto_pendiente": pago["monto_total"],
            "metodo_pago_previsto": pago.get("metodo_pago_previsto") or "CONTRAENTREGA",
            "estado_pago": "PENDIENTE",
            "comprobante_url": None,
            "fecha_pago": None,
        },
        "envio": {
            "direccion": envio.get("direccion") or "",
            "provincia": envio.get("provincia") or "Lima",
            "distrito": envio.get("distrito") or "",
            "courier": envio.get("courier") or "INTERNO",
            "agencia_shalom": envio.get("agencia_shalom"),
            "costo_envio": envio.get("costo_envio") or 0,
            "tipo": shipping_type(envio.get("provincia")),
            "nro_guia": None,
            "link_seguimiento": None,
        },
        "asignacion": {"id_usuario_actual": actor.id_usuario, "nombre_usuario_actual": actor.nombre},
        "historial": [*((existing.historial or []) if existing else []), history_entry(actor, accion, detalle)],
        "fechas_clave": {
            **((existing.fechas_clave or {}) if existing else {}),
            "confirmacion_llamada": now.isoformat(),
            "procesamiento_iniciado": now.isoformat(),
        },
        "notas": {
            "nota_pedido": (data.get("notas") or {}).get("nota_pedido", ""),
            "observaciones_internas": (existing.notas or {}).get("observaciones_internas", "") if existing else "",
            "motivo_anulacion": None,
        },
        "source": source,
        "shopify_order_id": str(shopify_order_id) if shopify_order_id else None,
    }
    fields["fechas_clave"]["creacion"] = fields["fechas_clave"].get("creacion") or now.isoformat()

    if existing:
        order_id = existing.id_pedido
        on_create = None
    else:
        stamp = int(now.timestamp() * 1000)
        while await db.get(Order, f"PED-{stamp}") is not None:
            stamp += 1
        order_id = f"PED-{stamp}"
        on_create = {"id_interno": f"MANUAL-{stamp}", "fecha_creacion": now}
    order, created = await document_svc.upsert_document(db, Order, order_id, fields, on_create=on_create)
    log.info("Order %s %s by %s", order_id, "created" if created else "confirmed", actor.id_usuario)
    return order, created


# ── Transitions ────────────────────────────────────────────────────────


async def change_status(
    db: AsyncSession,
    order_id: str,
    new_status: OrderStatus | str,
    actor: Actor,
    *,
    detalle: str | None = None,
    motivo_anulacion: str | None = None,
) -> Order | None:
    """Move an order to another Kanban column; any known status is accepted."""
    new_status = OrderStatus(new_status)
    order = await get_order(db, order_id)
    if not order:
        return None

    previous = order.estado_actual
    order.estado_actual = new_status.value
    key_date = STATUS_KEY_DATES.get(new_status)
    if key_date:
        order.fechas_clave = {**(order.fechas_clave or {}), key_date: _now().isoformat()}
    if new_status is OrderStatus.ANULADO and motivo_anulacion:
        order.notas = {**(order.notas or {}), "motivo_anulacion": motivo_anulacion}
    _append_history(order, history_entry(
        actor,
        "Cambio de Estado",
        detalle or f"Estado cambiado de {previous} a {new_status.value}.",
    ))
    await db.commit()
    await db.refresh(order)
    log.info("Order %s: %s -> %s", order_id, previous, new_status.value)
    return order


def item_stock_status(item: dict, product) -> str:
    """Stock verdict for one pending line item."""
    if product is None or product.estado == InventoryStatus.DESCONTINUADO.value:
        return OrderItemStatus.SIN_STOCK.value
    if (product.stock_actual or 0) >= (item.get("cantidad") or 0):
        return OrderItemStatus.CONFIRMADO.value
    return OrderItemStatus.SIN_STOCK.value


async def check_stock(db: AsyncSession, order_id: str, actor: Actor) -> tuple[Order, bool] | None:
    """Mark each PENDIENTE item CONFIRMADO or SIN_STOCK against inventory.

    Stock is not reserved or decremented. Returns (order, all_confirmed).
    """
    order = await get_order(db, order_id)
    if not order:
        return None

    items = [dict(item) for item in order.items or []]
    products = await inventory_svc.get_items(db, (item.get("sku") for item in items))
    for item in items:
        if item.get("estado_item") == OrderItemStatus.PENDIENTE.value:
            item["estado_item"] = item_stock_status(item, products.get(item.get("sku")))
    order.items = items

    all_confirmed = bool(items) and all(i.get("estado_item") == OrderItemStatus.CONFIRMADO.value for i in items)
    missing = [i.get("sku") for i in items if i.get("estado_item") == OrderItemStatus.SIN_STOCK.value]
    detalle = "Todos los items confirmados." if all_confirmed else f"Sin stock: {', '.join(map(str, missing)) or '-'}"
    _append_history(order, history_entry(actor, "Verificación de Stock", detalle))
    await db.commit()
    await db.refresh(order)
    return order, all_confirmed


async def return_to_call_center(db: AsyncSession, order_id: str, actor: Actor) -> Order | None:
    """Put the order on hold (RETENIDO) and send its lead back to follow-up."""
    order = await get_order(db, order_id)
    if not order:
        return None

    now = _now()
    lead = None
    if order.source == "shopify" and order.shopify_order_id:
        lead = await db.get(ShopifyLead, order.shopify_order_id)
    elif (order.cliente or {}).get("id_cliente"):
        lead = await db.get(Client, order.cliente["id_cliente"])
    if lead is None:
        raise OrderError(f"No lead found for order {order_id}")

    lead.call_status = CallStatus.EN_SEGUIMIENTO.value
    lead.last_updated = now
    order.estado_actual = OrderStatus.RETENIDO.value
    _append_history(order, history_entry(actor, "Devuelto a Call Center", "Lead enviado a seguimiento."))
    await db.commit()
    await db.refresh(order)
    log.info("Order %s returned to call center (lead %s)", order_id, lead.id)
    return order


async def update_order(db: AsyncSession, order_id: str, actor: Actor, **sections) -> Order | None:
    """Merge edits into pago / envio / notas / asignacion sections."""
    order = await get_order(db, order_id)
    if not order:
        return None
    for name, values in sections.items():
        if values is None:
            continue
        current = getattr(order, name) or {}
        setattr(order, name, {**current, **values})
    _append_history(order, history_entry(actor, "Pedido Actualizado", ", ".join(k for k, v in sections.items() if v)))
    await db.commit()
    await db.refresh(order)
    return order
