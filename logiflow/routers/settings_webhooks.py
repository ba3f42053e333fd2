"""Outbound webhook configuration routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.webhook import WebhookCreate, WebhookResponse, WebhookUpdate
from ..services import webhook_svc

router = APIRouter(prefix="/api/settings/webhooks", tags=["settings"])


@router.get("", response_model=list[WebhookResponse])
async def webhook_list(db: AsyncSession = Depends(get_db), event: str | None = None):
    return await webhook_svc.list_webhooks(db, event=event)


@router.post("", response_model=WebhookResponse, status_code=201)
async def webhook_create(body: WebhookCreate, db: AsyncSession = Depends(get_db)):
    return await webhook_svc.create_webhook(db, **body.model_dump(mode="json"))


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def webhook_update(webhook_id: str, body: WebhookUpdate, db: AsyncSession = Depends(get_db)):
    webhook = await webhook_svc.update_webhook(db, webhook_id, **body.model_dump(mode="json", exclude_unset=True))
    if not webhook:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return webhook


@router.delete("/{webhook_id}")
async def webhook_delete(webhook_id: str, db: AsyncSession = Depends(get_db)):
    if not await webhook_svc.delete_webhook(db, webhook_id):
        raise HTTPException(status_code=404, detail="Webhook not found")
    return {"deleted": True}
