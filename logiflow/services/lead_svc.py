"""Lead service - ingestion writes, client CRUD and the call-center queue."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..ingestion import kommo, shopify
from ..ingestion.decode import KommoLeadPayload
from ..ingestion.shopify import NormalizedLead
from ..models.lead import LEAD_COLLECTIONS, Client, ShopifyLead
from . import document_svc
from .queue_svc import QueueFilters, project_queue

log = logging.getLogger(__name__)


def lead_model(collection: str) -> type[Client] | type[ShopifyLead]:
    try:
        return LEAD_COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown lead collection '{collection}'") from None


def lead_document(lead: Client | ShopifyLead) -> dict:
    doc = lead.to_document()
    doc["collection"] = lead.__tablename__
    return doc


# ── Ingestion ──────────────────────────────────────────────────────────


async def store_normalized(db: AsyncSession, normalized: NormalizedLead):
    model = lead_model(normalized.collection)
    return await document_svc.upsert_document(
        db, model, normalized.key, normalized.fields, on_create=normalized.on_create
    )


async def ingest_shopify_order(
    db: AsyncSession, data: dict, store_name: str
) -> tuple[ShopifyLead, bool]:
    """Normalize and merge one Shopify order into ``shopify_leads``."""
    normalized = shopify.create_shopify_lead(data, store_name)
    lead, created = await store_normalized(db, normalized)
    log.info("[%s] Shopify order %s stored as lead (%s)", store_name, normalized.key,
             "new" if created else "merged")
    return lead, created


async def ingest_kommo_lead(db: AsyncSession, payload: KommoLeadPayload) -> tuple[Client, bool]:
    """Merge a Kommo lead/contact into ``clients`` keyed by DNI.

    Raises:
        MissingDNIError: before anything is written.
    """
    normalized = kommo.build_client(payload.lead, payload.related_contacts)
    client, created = await store_normalized(db, normalized)
    log.info("Kommo %s/%s stored as client %s", payload.entity, payload.event, normalized.key)
    return client, created


# ── Client CRUD ────────────────────────────────────────────────────────


async def list_clients(
    db: AsyncSession,
    *,
    search: str | None = None,
    source: str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[Client]:
    stmt = select(Client)
    if search:
        q = f"%{search}%"
        stmt = stmt.where(
            or_(
                Client.nombres.ilike(q),
                Client.apellidos.ilike(q),
                Client.dni.ilike(q),
                Client.celular.ilike(q),
                Client.email.ilike(q),
            )
        )
    if source:
        stmt = stmt.where(Client.source == source)
    stmt = stmt.order_by(Client.last_updated.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def save_client(db: AsyncSession, dni: str, **fields) -> tuple[Client, bool]:
    """Create or merge a client by DNI (manual entry from the dashboard)."""
    now = datetime.now(timezone.utc)
    fields = {"dni": dni, "last_updated": now, **fields}
    fields.setdefault("source", "manual")
    return await document_svc.upsert_document(
        db, Client, dni, fields,
        on_create={"call_status": "NUEVO", "first_interaction_at": now},
    )


async def delete_client(db: AsyncSession, client_id: str) -> bool:
    return await document_svc.delete_document(db, Client, client_id)


# ── Leads (both collections) ───────────────────────────────────────────


async def get_lead(db: AsyncSession, collection: str, lead_id: str):
    return await db.get(lead_model(collection), lead_id)


async def update_lead(db: AsyncSession, collection: str, lead_id: str, **fields):
    """Agent edit of a lead; stamps ``last_updated``."""
    fields["last_updated"] = datetime.now(timezone.utc)
    return await document_svc.update_document(db, lead_model(collection), lead_id, **fields)


async def all_leads(db: AsyncSession) -> list[dict]:
    leads: list[dict] = []
    for model in LEAD_COLLECTIONS.values():
        for lead in await document_svc.list_documents(db, model):
            leads.append(lead_document(lead))
    return leads


async def call_center_queue(db: AsyncSession, filters: QueueFilters | None = None) -> list[dict]:
    """Snapshot both lead collections and project the queue."""
    return project_queue(await all_leads(db), filters, tz=settings.timezone)
