"""Demo data for local development (``logiflow seed``)."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import ADMIN_PERMISSIONS, DEFAULT_PERMISSIONS, OrderItemStatus, OrderStatus, UserRole
from ..models import Client, InventoryItem, Order, StaffUser

log = logging.getLogger(__name__)

SEED_USERS = [
    {"nombre": "Administrador", "email": "admin@logiflow.pe", "rol": UserRole.ADMIN},
    {"nombre": "Lucía Ramos", "email": "lucia.ramos@logiflow.pe", "rol": UserRole.CALL_CENTER},
    {"nombre": "Jorge Quispe", "email": "jorge.quispe@logiflow.pe", "rol": UserRole.LOGISTICA},
    {"nombre": "Carla Huamán", "email": "carla.huaman@logiflow.pe", "rol": UserRole.EMPACADO},
]

SEED_INVENTORY = [
    {"nombre": "Serum Facial Vitamina C", "tienda": "Blumi", "stock_actual": 40, "stock_minimo": 10, "precios": {"compra": 25.0, "venta": 59.9}},
    {"nombre": "Crema Hidratante Noche", "tienda": "Blumi", "stock_actual": 8, "stock_minimo": 10, "precios": {"compra": 30.0, "venta": 69.9}},
    {"nombre": "Mochila Trekking 40L", "tienda": "Cumbre", "stock_actual": 15, "stock_minimo": 5, "precios": {"compra": 90.0, "venta": 189.0}},
    {"nombre": "Linterna Frontal LED", "tienda": "Cumbre", "stock_actual": 0, "stock_minimo": 5, "precios": {"compra": 18.0, "venta": 45.0}},
    {"nombre": "Polo Algodón Pima", "tienda": "Dearel", "stock_actual": 120, "stock_minimo": 30, "precios": {"compra": 22.0, "venta": 49.0}},
    {"nombre": "Organizador de Escritorio", "tienda": "Trazto", "stock_actual": 25, "stock_minimo": 5, "precios": {"compra": 15.0, "venta": 39.0}},
]

SEED_CUSTOMERS = [
    {"dni": "45871236", "nombres": "María Fernández", "celular": "987654321", "direccion": "Av. Arequipa 1234", "distrito": "Lince", "provincia": "Lima"},
    {"dni": "70123458", "nombres": "Carlos Mendoza", "celular": "912345678", "direccion": "Jr. Puno 456", "distrito": "Cercado", "provincia": "Arequipa"},
    {"dni": "41236987", "nombres": "Rosa Villanueva", "celular": "956781234", "direccion": "Calle Los Pinos 78", "distrito": "Surco", "provincia": "Lima"},
]

SEED_STATUSES = [OrderStatus.PENDIENTE, OrderStatus.EN_PREPARACION, OrderStatus.EN_TRANSITO_PROVINCIA]

SEEDED_MODELS = (Order, Client, InventoryItem, StaffUser)


async def clear_all(db: AsyncSession) -> None:
    for model in SEEDED_MODELS:
        await db.execute(delete(model))
        log.info("Cleared %s", model.__tablename__)
    await db.commit()


def _users() -> list[StaffUser]:
    return [
        StaffUser(
            id_usuario=uuid.uuid4().hex,
            nombre=u["nombre"],
            email=u["email"],
            rol=u["rol"].value,
            activo=True,
            permisos=dict(ADMIN_PERMISSIONS if u["rol"] is UserRole.ADMIN else DEFAULT_PERMISSIONS),
        )
        for u in SEED_USERS
    ]


def _inventory() -> list[InventoryItem]:
    return [
        InventoryItem(
            sku=f"SKU-{i:04d}",
            id_producto_base=f"P-{i:04d}",
            descripcion="",
            ubicacion_almacen=f"A-{i:02d}",
            proveedor={"id_proveedor": "N/A", "nombre": "N/A"},
            estado="ACTIVO",
            variantes=[],
            historial_stock=[],
            **item,
        )
        for i, item in enumerate(SEED_INVENTORY, start=1)
    ]


def _clients(now: datetime) -> list[Client]:
    return [
        Client(
            id=uuid.uuid4().hex,
            email=f"cliente{c['dni']}@example.com",
            source="manual",
            call_status="VENTA_CONFIRMADA",
            first_interaction_at=now,
            last_updated=now,
            **c,
        )
        for c in SEED_CUSTOMERS
    ]


def _orders(users: list[StaffUser], items: list[InventoryItem], clients: list[Client], now: datetime) -> list[Order]:
    orders = []
    for index, client in enumerate(clients):
        user = users[index % len(users)]
        picked = [items[index % len(items)]]
        if index % 2 == 0:
            picked.append(items[(index + 1) % len(items)])
        order_items = [
            {
                "sku": item.sku,
                "nombre": item.nombre,
                "variante": "",
                "cantidad": 1,
                "precio_unitario": item.precios["venta"],
                "subtotal": item.precios["venta"],
                "estado_item": OrderItemStatus.PENDIENTE.value,
            }
            for item in picked
        ]
        provincia = client.provincia or "Lima"
        costo_envio = 10.0 if provincia == "Lima" else 20.0
        total = sum(i["subtotal"] for i in order_items) + costo_envio
        orders.append(Order(
            id_pedido=f"PED-{now.year}-{index + 1:05d}",
            id_interno=f"INT-{index + 1:05d}",
            tienda={"id_tienda": picked[0].tienda, "nombre": picked[0].tienda},
            estado_actual=SEED_STATUSES[index % len(SEED_STATUSES)].value,
            cliente={
                "id_cliente": client.dni,
                "dni": client.dni,
                "nombres": client.nombres,
                "celular": client.celular,
                "email": client.email,
            },
            items=order_items,
            pago={
                "monto_total": total,
                "monto_pendiente": total,
                "metodo_pago_previsto": "CONTRAENTREGA",
                "estado_pago": "PENDIENTE",
                "comprobante_url": None,
                "fecha_pago": None,
            },
            envio={
                "tipo": "LIMA" if provincia == "Lima" else "PROVINCIA",
                "provincia": provincia,
                "distrito": client.distrito,
                "direccion": client.direccion,
                "courier": "INTERNO" if provincia == "Lima" else "SHALOM",
                "agencia_shalom": None,
                "nro_guia": None,
                "link_seguimiento": None,
                "costo_envio": costo_envio,
            },
            asignacion={"id_usuario_actual": user.id_usuario, "nombre_usuario_actual": user.nombre},
            historial=[{
                "fecha": now.isoformat(),
                "id_usuario": user.id_usuario,
                "nombre_usuario": user.nombre,
                "accion": "Creación de Pedido",
                "detalle": "Pedido creado por el seed de desarrollo.",
            }],
            fechas_clave={"creacion": now.isoformat(), "confirmacion_llamada": now.isoformat()},
            notas={"nota_pedido": "", "observaciones_internas": "", "motivo_anulacion": None},
            source="manual",
            fecha_creacion=now,
        ))
    return orders


async def seed_all(db: AsyncSession) -> dict[str, int]:
    """Clear the seeded tables and load the demo data. Returns row counts."""
    await clear_all(db)
    now = datetime.now(timezone.utc)
    users = _users()
    items = _inventory()
    clients = _clients(now)
    orders = _orders(users, items, clients, now)
    db.add_all([*users, *items, *clients, *orders])
    await db.commit()
    counts = {"users": len(users), "inventory": len(items), "clients": len(clients), "orders": len(orders)}
    log.info("Seed complete: %s", counts)
    return counts
