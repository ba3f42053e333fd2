"""Kommo lead/contact payload -> client document and order draft."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .shopify import NormalizedLead, format_phone_number, parse_timestamp

log = logging.getLogger(__name__)

# Custom-field names used by the form-encoded hook, mapped to field codes
FIELD_NAME_CODES = {
    "dni": "DNI",
    "phone": "PHONE",
    "telefono": "PHONE",
    "teléfono": "PHONE",
    "celular": "PHONE",
    "email": "EMAIL",
    "correo": "EMAIL",
    "direccion": "ADDRESS",
    "dirección": "ADDRESS",
    "address": "ADDRESS",
    "distrito": "DISTRICT",
    "district": "DISTRICT",
}


class MissingDNIError(ValueError):
    """The payload carries no DNI custom field, so there is no document key."""


def _first_value(field: dict) -> str | None:
    values = field.get("values") or []
    if not values:
        return None
    first = values[0]
    value = first.get("value") if isinstance(first, dict) else first
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_custom_fields(entity: dict | None) -> dict[str, str]:
    """Custom field values keyed by field code (``DNI``, ``PHONE``, ...).

    Reads the API v4 ``custom_fields_values`` array and the legacy webhook
    ``custom_fields`` array; the code comes from ``field_code``/``code`` or,
    failing that, from the field name.
    """
    found: dict[str, str] = {}
    if not isinstance(entity, dict):
        return found
    for key in ("custom_fields_values", "custom_fields"):
        for field in entity.get(key) or []:
            if not isinstance(field, dict):
                continue
            code = field.get("field_code") or field.get("code")
            if not code:
                name = str(field.get("field_name") or field.get("name") or "").strip().lower()
                code = FIELD_NAME_CODES.get(name)
            if not code:
                continue
            code = str(code).upper()
            value = _first_value(field)
            if value and code not in found:
                found[code] = value
    return found


def _contact_of(lead: dict, contacts: list[dict]) -> dict | None:
    embedded = lead.get("_embedded") or {}
    embedded_contacts = embedded.get("contacts") if isinstance(embedded, dict) else None
    if embedded_contacts:
        return embedded_contacts[0]
    return contacts[0] if contacts else None


def build_client(
    lead: dict,
    contacts: list[dict] | None = None,
    received_at: datetime | None = None,
) -> NormalizedLead:
    """Build the ``clients`` document for a Kommo lead (or contact) event.

    Raises:
        MissingDNIError: No DNI in the contact's or the lead's custom fields.
    """
    contacts = contacts or []
    contact = _contact_of(lead, contacts)
    custom = {**extract_custom_fields(lead), **extract_custom_fields(contact)}

    dni = custom.get("DNI")
    if not dni:
        log.warning("Kommo lead %s has no DNI custom field; nothing stored", lead.get("id"))
        raise MissingDNIError("DNI no encontrado en los campos personalizados.")

    received_at = received_at or datetime.now(timezone.utc)
    changed_at = (
        parse_timestamp(lead.get("updated_at"))
        or parse_timestamp(lead.get("last_modified"))
        or parse_timestamp(lead.get("created_at"))
        or received_at
    )

    fields: dict[str, Any] = {
        "dni": dni,
        "nombres": str((contact or {}).get("name") or lead.get("name") or "").strip(),
        "source": "kommo",
        "last_updated": changed_at,
        "last_updated_from_kommo": changed_at,
    }
    optional = {
        "celular": format_phone_number(custom.get("PHONE")),
        "email": custom.get("EMAIL"),
        "direccion": custom.get("ADDRESS"),
        "distrito": custom.get("DISTRICT"),
        "kommo_lead_id": lead.get("id"),
        "kommo_contact_id": (contact or {}).get("id"),
        "etapa_kommo": lead.get("status_id"),
    }
    for name, value in optional.items():
        if value not in (None, ""):
            fields[name] = str(value)

    return NormalizedLead(
        collection="clients",
        key=dni,
        fields=fields,
        on_create={
            "call_status": "NUEVO",
            "provincia": "Lima",
            "first_interaction_at": received_at,
        },
    )


def build_order_cliente(lead: dict, contacts: list[dict] | None = None) -> dict:
    """Denormalized customer snapshot for an order created from Kommo.

    Without a DNI the Kommo contact id stands in as ``KOMMO-<contactId>``.
    """
    contacts = contacts or []
    contact = _contact_of(lead, contacts) or {}
    custom = {**extract_custom_fields(lead), **extract_custom_fields(contact)}
    dni = custom.get("DNI")
    contact_id = contact.get("id") or lead.get("id")
    return {
        "id_cliente": dni or f"KOMMO-{contact_id}",
        "nombres": str(contact.get("name") or lead.get("name") or "Cliente de Kommo"),
        "dni": dni,
        "celular": format_phone_number(custom.get("PHONE")),
        "email": custom.get("EMAIL"),
        "direccion": custom.get("ADDRESS"),
        "distrito": custom.get("DISTRICT"),
    }
