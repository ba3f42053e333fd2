"""Transport-boundary decoding of ingestion payloads.

The ingestion endpoints accept either a Shopify order or a Kommo lead/contact
event, JSON or form-encoded. ``decode_payload`` turns the body into exactly one
of two typed payloads or raises ``UnrecognizedPayloadError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

_BRACKET_KEY = re.compile(r"\[([^\]]*)\]")

KOMMO_ENTITIES = ("leads", "contacts")
KOMMO_EVENTS = ("add", "update", "status")


class UnrecognizedPayloadError(ValueError):
    """Body is neither a Shopify order nor a Kommo lead/contact event."""


@dataclass
class ShopifyOrderPayload:
    data: dict


@dataclass
class KommoLeadPayload:
    """A Kommo webhook. ``event`` is None for events we do not ingest (delete, note...)."""

    entity: str
    event: str | None
    item: dict = field(default_factory=dict)
    contacts: list[dict] = field(default_factory=list)
    raw: dict = field(default_factory=dict)

    @property
    def lead(self) -> dict:
        return self.item if self.entity == "leads" else {}

    @property
    def related_contacts(self) -> list[dict]:
        if self.entity == "contacts":
            return [self.item]
        return self.contacts


def _listify(node: Any) -> Any:
    """Turn dicts keyed "0", "1", ... into lists, recursively."""
    if isinstance(node, dict):
        converted = {k: _listify(v) for k, v in node.items()}
        if converted and all(k.isdigit() for k in converted):
            return [converted[k] for k in sorted(converted, key=int)]
        return converted
    if isinstance(node, list):
        return [_listify(v) for v in node]
    return node


def unflatten_form(pairs: Iterable[tuple[str, Any]]) -> dict:
    """``leads[add][0][name]=x`` style form fields -> nested dicts/lists."""
    root: dict = {}
    for key, value in pairs:
        head = key.split("[", 1)[0]
        parts = [head] + _BRACKET_KEY.findall(key[len(head):])
        node = root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return _listify(root)


def _first(items: Any) -> dict | None:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    if isinstance(items, dict) and items:
        return items
    return None


def _decode_kommo(data: dict) -> KommoLeadPayload | None:
    entity = next((e for e in KOMMO_ENTITIES if isinstance(data.get(e), dict)), None)
    if entity is None:
        return None

    events = data[entity]
    other = "contacts" if entity == "leads" else "leads"
    contacts: list[dict] = []
    if other == "contacts" and isinstance(data.get("contacts"), dict):
        for event in KOMMO_EVENTS:
            contact = _first(data["contacts"].get(event))
            if contact:
                contacts.append(contact)

    for event in KOMMO_EVENTS:
        item = _first(events.get(event))
        if item is not None:
            return KommoLeadPayload(entity=entity, event=event, item=item, contacts=contacts, raw=data)
    return KommoLeadPayload(entity=entity, event=None, contacts=contacts, raw=data)


def _looks_like_shopify_order(data: dict) -> bool:
    if data.get("id") in (None, ""):
        return False
    return "line_items" in data or ("order_number" in data and "financial_status" in data)


def decode_payload(data: Any) -> ShopifyOrderPayload | KommoLeadPayload:
    """Classify an ingestion body by its characteristic fields.

    Raises:
        UnrecognizedPayloadError: The body matches neither shape.
    """
    if not isinstance(data, dict):
        raise UnrecognizedPayloadError("Payload must be an object")

    kommo = _decode_kommo(data)
    if kommo is not None:
        return kommo
    if _looks_like_shopify_order(data):
        return ShopifyOrderPayload(data=data)
    raise UnrecognizedPayloadError(
        "Payload is neither a Shopify order nor a Kommo lead/contact event"
    )
