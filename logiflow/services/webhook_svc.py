"""Outbound webhook service - configuration CRUD and event fan-out."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx
from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..constants import WebhookEvent
from ..models.webhook import WebhookConfig

log = logging.getLogger(__name__)

def get_http_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outbound deliveries (FastAPI dependency); None is the network."""
    return None


# ── Configuration CRUD ─────────────────────────────────────────────────


async def list_webhooks(db: AsyncSession, *, event: str | None = None, active_only: bool = False) -> list[WebhookConfig]:
    stmt = select(WebhookConfig)
    if event:
        stmt = stmt.where(WebhookConfig.event == event)
    if active_only:
        stmt = stmt.where(WebhookConfig.active.is_(True))
    stmt = stmt.order_by(WebhookConfig.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_webhook(db: AsyncSession, webhook_id: str) -> WebhookConfig | None:
    return await db.get(WebhookConfig, webhook_id)


async def create_webhook(db: AsyncSession, **kwargs) -> WebhookConfig:
    webhook = WebhookConfig(**kwargs)
    db.add(webhook)
    await db.commit()
    await db.refresh(webhook)
    return webhook


async def update_webhook(db: AsyncSession, webhook_id: str, **kwargs) -> WebhookConfig | None:
    webhook = await get_webhook(db, webhook_id)
    if not webhook:
        return None
    for key, value in kwargs.items():
        setattr(webhook, key, value)
    await db.commit()
    await db.refresh(webhook)
    return webhook


async def delete_webhook(db: AsyncSession, webhook_id: str) -> bool:
    webhook = await get_webhook(db, webhook_id)
    if not webhook:
        return False
    await db.delete(webhook)
    await db.commit()
    return True


# ── Delivery ───────────────────────────────────────────────────────────


async def _deliver(client: httpx.AsyncClient, webhook: WebhookConfig, body: dict) -> dict:
    resp = await client.post(webhook.url, json=body)
    return {
        "webhook_id": webhook.id,
        "url": webhook.url,
        "status_code": resp.status_code,
        "ok": resp.is_success,
        "response": resp.text[:1000],
    }


async def dispatch_event(
    db: AsyncSession,
    event: WebhookEvent | str,
    data: dict,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict]:
    """POST ``{event, data, sent_at}`` to every active webhook for the event.

    Deliveries run concurrently; a failing URL is reported in its own result
    entry and does not affect the others. Nothing is retried.
    """
    event = WebhookEvent(event).value
    webhooks = await list_webhooks(db, event=event, active_only=True)
    if not webhooks:
        return []

    body = jsonable_encoder({
        "event": event,
        "data": data,
        "sent_at": datetime.now(timezone.utc),
    })
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport) as client:
        outcomes = await asyncio.gather(
            *(_deliver(client, w, body) for w in webhooks),
            return_exceptions=True,
        )

    results = []
    for webhook, outcome in zip(webhooks, outcomes):
        if isinstance(outcome, BaseException):
            log.warning("Webhook %s (%s) failed for %s: %s", webhook.name, webhook.url, event, outcome)
            results.append({
                "webhook_id": webhook.id,
                "url": webhook.url,
                "status_code": None,
                "ok": False,
                "error": str(outcome) or type(outcome).__name__,
            })
        else:
            if not outcome["ok"]:
                log.warning("Webhook %s answered %s for %s", webhook.url, outcome["status_code"], event)
            results.append(outcome)
    log.info("Dispatched %s to %d webhook(s)", event, len(results))
    return results


# ── Notify proxy ───────────────────────────────────────────────────────


class NotifyNotConfigured(Exception):
    """LOGIFLOW_NOTIFY_WEBHOOK_URL is not set."""


class NotifyUpstreamError(Exception):
    def __init__(self, status_code: int, reason: str, body: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"{status_code} {reason}")


async def forward_notification(payload: dict, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """Relay ``payload`` to the configured automation webhook (e.g. Make.com)."""
    url = settings.notify_webhook_url
    if not url:
        raise NotifyNotConfigured("Notify webhook URL is not configured")

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport) as client:
        resp = await client.post(url, json=jsonable_encoder(payload))
    if resp.is_error:
        log.error("Notify webhook answered %s: %s", resp.status_code, resp.text[:500])
        raise NotifyUpstreamError(resp.status_code, resp.reason_phrase, resp.text[:1000])
    log.info("Notify webhook accepted (%s)", resp.status_code)
