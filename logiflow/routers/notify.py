"""Notify proxy - relays dashboard notifications to the automation webhook."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException

from ..schemas.webhook import NotifyRequest
from ..services import webhook_svc
from ..services.webhook_svc import NotifyNotConfigured, NotifyUpstreamError

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notify"])


@router.post("/notify")
async def notify(
    body: NotifyRequest,
    transport: httpx.AsyncBaseTransport | None = Depends(webhook_svc.get_http_transport),
):
    """Server-side relay so the automation URL never reaches the browser."""
    try:
        await webhook_svc.forward_notification(body.payload, transport=transport)
    except NotifyNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except NotifyUpstreamError as e:
        raise HTTPException(status_code=e.status_code, detail=f"El servicio externo devolvió un error: {e.reason}")
    except httpx.HTTPError as e:
        log.error("Notify webhook unreachable: %s", e)
        raise HTTPException(status_code=502, detail="El servicio externo no respondió")
    return {"success": True, "message": "Webhook disparado correctamente."}
