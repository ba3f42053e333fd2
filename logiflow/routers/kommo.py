"""Kommo CRM routes - push confirmed orders back to their leads."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..services import kommo_svc, order_svc
from ..services.kommo_svc import KommoError, KommoNotConfigured, KommoTokenCache

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/kommo", tags=["kommo"])


class LeadUpdateRequest(BaseModel):
    order_id: str


@router.post("/update-lead")
async def update_lead(
    body: LeadUpdateRequest,
    db: AsyncSession = Depends(get_db),
    cache: KommoTokenCache = Depends(kommo_svc.get_token_cache),
):
    order = await order_svc.get_order(db, body.order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    try:
        result = await kommo_svc.sync_order_to_lead(cache, order.to_document())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KommoNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except KommoError as e:
        log.error("Kommo lead update failed for order %s: %s", body.order_id, e)
        raise HTTPException(status_code=502, detail=f"Failed to update lead in Kommo: {e.message}")
    return {"success": True, "message": "Lead updated in Kommo.", "data": result}


@router.get("/leads/{lead_id}")
async def get_lead(lead_id: str, cache: KommoTokenCache = Depends(kommo_svc.get_token_cache)):
    try:
        async with kommo_svc.KommoClient(cache) as kommo:
            return await kommo.get_lead(lead_id)
    except KommoNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except KommoError as e:
        raise HTTPException(status_code=e.status_code if e.status_code == 404 else 502, detail=e.message)
