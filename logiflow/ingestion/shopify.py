"""Shopify order payload -> lead document.

Every extractor here is total: missing or malformed fields fall back to
defaults instead of raising, since Shopify payloads vary between stores,
apps and API versions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

log = logging.getLogger(__name__)

UNKNOWN_CLIENT_NAME = "Usuario Desconocido"
DEFAULT_PROVINCE = "Lima"

_PHONE_STRIP = re.compile(r"[^\d+]")
_EMAIL_SEPARATORS = re.compile(r"[._-]")


@dataclass
class NormalizedLead:
    """A lead ready for the persistence writer.

    ``fields`` are merged on every delivery; ``on_create`` only seeds a new
    document (call-center state must survive webhook re-deliveries).
    """

    collection: str
    key: str
    fields: dict[str, Any]
    on_create: dict[str, Any] = field(default_factory=dict)


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings or unix seconds; naive results are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text), tz=timezone.utc)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def format_phone_number(phone: str | None) -> str:
    """Keep digits and '+', then drop a leading Peruvian country code."""
    if not phone:
        return ""
    cleaned = _PHONE_STRIP.sub("", str(phone))
    if cleaned.startswith("+51"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("51"):
        cleaned = cleaned[2:]
    return cleaned.strip()


def extract_client_name(data: dict, store: str) -> str:
    """Best available customer name; never empty.

    Priority: shipping address, billing address, customer first/last name,
    customer default address, the local part of the e-mail, then
    ``Usuario Desconocido``.
    """
    shipping = _dict(data.get("shipping_address"))
    billing = _dict(data.get("billing_address"))
    customer = _dict(data.get("customer"))
    default_address = _dict(customer.get("default_address"))

    email = data.get("contact_email") or customer.get("email") or data.get("email") or ""
    email_name = _EMAIL_SEPARATORS.sub(" ", str(email).split("@")[0]).strip() if email else ""

    candidates = (
        shipping.get("name"),
        billing.get("name"),
        f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}",
        default_address.get("name"),
        email_name,
    )
    for candidate in candidates:
        name = str(candidate).strip() if candidate else ""
        if name:
            log.debug("[%s] client identified as %r", store, name)
            return name

    log.warning("[%s] could not determine client name for order %s", store, data.get("id"))
    return UNKNOWN_CLIENT_NAME


def extract_phone_number(data: dict) -> str:
    shipping = _dict(data.get("shipping_address"))
    billing = _dict(data.get("billing_address"))
    customer = _dict(data.get("customer"))
    phone = (
        shipping.get("phone")
        or billing.get("phone")
        or data.get("phone")
        or customer.get("phone")
        or _dict(customer.get("default_address")).get("phone")
        or ""
    )
    return format_phone_number(phone)


def process_shopify_items(line_items: list | None) -> list[dict]:
    """Map Shopify line items 1:1 onto order items."""
    items = []
    for item in line_items or []:
        item = _dict(item)
        precio_unitario = to_float(item.get("price"))
        cantidad = _to_int(item.get("quantity"))
        items.append({
            "sku": item.get("sku") or "N/A",
            "nombre": item.get("title") or "Producto sin nombre",
            "variante": item.get("variant_title") or "",
            "cantidad": cantidad,
            "precio_unitario": precio_unitario,
            "subtotal": precio_unitario * cantidad,
            "estado_item": "PENDIENTE",
        })
    return items


def extract_payment_details(data: dict) -> dict:
    shipping_set = _dict(_dict(data.get("total_shipping_price_set")).get("shop_money"))
    gateways = data.get("payment_gateway_names") or []
    return {
        "total_price": to_float(data.get("total_price")),
        "subtotal_price": to_float(data.get("subtotal_price")),
        "total_shipping": to_float(shipping_set.get("amount")),
        "total_tax": to_float(data.get("total_tax")),
        "total_discounts": to_float(data.get("total_discounts")),
        "payment_gateway": (gateways[0] if gateways else None) or "Desconocido",
        "financial_status": data.get("financial_status") or "pending",
        "currency": data.get("currency") or "PEN",
    }


def create_shopify_lead(data: dict, store: str, received_at: datetime | None = None) -> NormalizedLead:
    """Build the ``shopify_leads`` document for one order payload.

    Args:
        data: Decoded Shopify order webhook body.
        store: Display name of the originating store (``tienda_origen``).
        received_at: Delivery time, used when the payload carries no timestamps.

    Raises:
        ValueError: If the payload has no order id.
    """
    if data.get("id") in (None, ""):
        raise ValueError("Shopify payload has no order id")

    received_at = received_at or datetime.now(timezone.utc)
    shipping = _dict(data.get("shipping_address"))
    billing = _dict(data.get("billing_address"))
    customer = _dict(data.get("customer"))
    order_id = str(data["id"])

    # Payload time keeps re-deliveries of the same event byte-identical
    last_updated = (
        parse_timestamp(data.get("updated_at"))
        or parse_timestamp(data.get("created_at"))
        or received_at
    )

    fields: dict[str, Any] = {
        "nombres": extract_client_name(data, store),
        "celular": extract_phone_number(data),
        "direccion": shipping.get("address1") or billing.get("address1") or "",
        "distrito": shipping.get("city") or billing.get("city") or "",
        "provincia": shipping.get("province") or billing.get("province") or DEFAULT_PROVINCE,
        "source": "shopify",
        "tienda_origen": store,
        "shopify_order_id": order_id,
        "shopify_items": process_shopify_items(data.get("line_items")),
        "shopify_payment_details": extract_payment_details(data),
        "last_updated": last_updated,
    }

    optional = {
        "apellidos": shipping.get("last_name") or billing.get("last_name") or customer.get("last_name"),
        "email": customer.get("email") or data.get("email") or data.get("contact_email"),
        "direccion_referencia": shipping.get("address2") or billing.get("address2"),
        "codigo_postal": shipping.get("zip") or billing.get("zip"),
        "pais": shipping.get("country") or billing.get("country"),
        "shopify_order_number": data.get("order_number") or data.get("name"),
        "financial_status": data.get("financial_status"),
        "fulfillment_status": data.get("fulfillment_status"),
        "etapa_shopify": data.get("fulfillment_status"),
        "created_time": data.get("created_at"),
        "confirmed_at": data.get("confirmed_at") if data.get("confirmed") else None,
        "notas_cliente": data.get("note"),
        "shopify_customer_id": customer.get("id"),
    }
    for name, value in optional.items():
        if value not in (None, ""):
            fields[name] = value if isinstance(value, str) else str(value)

    if data.get("tags"):
        fields["tags"] = [t.strip() for t in str(data["tags"]).split(",") if t.strip()]

    return NormalizedLead(
        collection="shopify_leads",
        key=order_id,
        fields=fields,
        on_create={"call_status": "NUEVO", "first_interaction_at": received_at},
    )
