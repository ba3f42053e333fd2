"""FastAPI application for the LogiFlow backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev)
    if "sqlite" in settings.database_url:
        from .database import create_all
        await create_all()
    if not settings.shopify_store_map:
        log.warning("No Shopify stores configured (LOGIFLOW_SHOPIFY_STORES)")
    if not settings.ingestion_api_key:
        log.warning("LOGIFLOW_INGESTION_API_KEY is not set; ingestion endpoints will refuse requests")
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import (  # noqa: E402
    health, inventory, kommo, leads, notify, orders, settings_webhooks, users, webhooks,
)

app.include_router(webhooks.router)
app.include_router(leads.router)
app.include_router(orders.router)
app.include_router(inventory.router)
app.include_router(users.router)
app.include_router(settings_webhooks.router)
app.include_router(kommo.router)
app.include_router(notify.router)
app.include_router(health.router)
