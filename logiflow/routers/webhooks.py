"""Inbound webhooks - Shopify orders and Kommo leads."""

from __future__ import annotations

import json
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..ingestion.decode import (
    KommoLeadPayload,
    ShopifyOrderPayload,
    UnrecognizedPayloadError,
    decode_payload,
    unflatten_form,
)
from ..ingestion.kommo import MissingDNIError
from ..security.webhooks import verify_api_key, verify_shopify_request
from ..services import lead_svc, order_svc, webhook_svc
from ..services.order_svc import OrderError
from ..constants import WebhookEvent

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks"])


async def _parse_body(request: Request, raw_body: bytes) -> dict:
    """JSON or form-encoded body as a dict (form brackets unflattened)."""
    content_type = request.headers.get("content-type", "").lower()
    if not raw_body:
        raise HTTPException(status_code=400, detail="Empty body")
    if "form" in content_type:
        form = await request.form()
        return unflatten_form(form.multi_items())
    try:
        parsed = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="JSON body must be an object")
    return parsed


def _store_name(store_id: str | None) -> str:
    if store_id:
        store = settings.shopify_store(store_id)
        return store.name if store else store_id.capitalize()
    return settings.shop_names[0] if settings.shop_names else "Shopify"


@router.post("/webhooks/shopify/{store_id}")
async def shopify_order_webhook(
    store_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Order create/update webhook for one configured Shopify store."""
    raw_body = await request.body()
    store = verify_shopify_request(request, raw_body, store_id)

    try:
        data = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(data, dict) or data.get("id") in (None, ""):
        raise HTTPException(status_code=400, detail="Order id missing from payload")

    lead, created = await lead_svc.ingest_shopify_order(db, data, store.name)
    return {
        "success": True,
        "collection": "shopify_leads",
        "id": lead.id,
        "created": created,
        "store": store.name,
    }


async def _ingest(request: Request, db: AsyncSession) -> dict:
    raw_body = await request.body()
    data = await _parse_body(request, raw_body)
    try:
        payload = decode_payload(data)
    except UnrecognizedPayloadError as e:
        log.warning("Unrecognized ingestion payload: %s", e)
        raise HTTPException(status_code=422, detail=str(e))

    if isinstance(payload, ShopifyOrderPayload):
        store_name = _store_name(request.query_params.get("store"))
        lead, created = await lead_svc.ingest_shopify_order(db, payload.data, store_name)
        return {"success": True, "collection": "shopify_leads", "id": lead.id, "created": created}

    if payload.event is None:
        log.info("Kommo %s event ignored", payload.entity)
        return {"success": True, "status": "ignored", "message": "Evento no relevante. Ignorado."}

    try:
        client, created = await lead_svc.ingest_kommo_lead(db, payload)
    except MissingDNIError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "collection": "clients", "id": client.id, "created": created}


@router.post("/kommo-webhook", dependencies=[Depends(verify_api_key)])
async def kommo_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    return await _ingest(request, db)


@router.post("/data-ingestion", dependencies=[Depends(verify_api_key)])
async def data_ingestion(request: Request, db: AsyncSession = Depends(get_db)):
    """Automation (Make / Kommo) ingestion; JSON or form-encoded."""
    return await _ingest(request, db)


@router.post("/webhooks/kommo", status_code=201, dependencies=[Depends(verify_api_key)])
async def kommo_order_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    transport: httpx.AsyncBaseTransport | None = Depends(webhook_svc.get_http_transport),
):
    """Create a PENDIENTE order from a Kommo lead."""
    raw_body = await request.body()
    data = await _parse_body(request, raw_body)
    try:
        payload = decode_payload(data)
    except UnrecognizedPayloadError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if not isinstance(payload, KommoLeadPayload):
        raise HTTPException(status_code=422, detail="Expected a Kommo lead payload")

    try:
        order = await order_svc.create_from_kommo(db, payload)
    except OrderError as e:
        raise HTTPException(status_code=400, detail=str(e))

    deliveries = await webhook_svc.dispatch_event(
        db, WebhookEvent.ORDER_CREATED, order.to_document(), transport=transport
    )
    return {
        "message": "Webhook received and order created successfully.",
        "orderId": order.id_pedido,
        "webhooks": deliveries,
    }
