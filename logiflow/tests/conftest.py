"""Async test fixtures for LogiFlow tests using SQLite."""

from __future__ import annotations

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from typer.testing import CliRunner

from logiflow.config import settings
from logiflow.database import get_db
from logiflow.models.base import Base

STORE_SECRET = "shpss_test_secret"
API_KEY = "ingest-key-123"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Known store table and ingestion key; notify URL unset."""
    monkeypatch.setattr(settings, "shopify_stores", json.dumps({
        "blumi": {"name": "Blumi", "domain": "blumi.myshopify.com", "webhook_secret": STORE_SECRET},
        "cumbre": {"name": "Cumbre", "domain": "cumbre.myshopify.com", "webhook_secret": ""},
        "dearel": {"name": "Dearel", "domain": "dearel.myshopify.com", "webhook_secret": "x", "active": False},
    }))
    monkeypatch.setattr(settings, "ingestion_api_key", API_KEY)
    monkeypatch.setattr(settings, "notify_webhook_url", "")
    monkeypatch.setattr(settings, "timezone", "America/Lima")


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(engine):
    """HTTPX async test client against the LogiFlow app."""
    from logiflow.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def cli_runner():
    return CliRunner()


# ── Payload factories ──────────────────────────────────────────────────


def shopify_order(**overrides) -> dict:
    order = {
        "id": 5551234567,
        "order_number": 1042,
        "name": "#1042",
        "created_at": "2024-05-10T14:32:00-05:00",
        "updated_at": "2024-05-10T14:35:00-05:00",
        "financial_status": "pending",
        "fulfillment_status": None,
        "total_price": "119.80",
        "subtotal_price": "109.80",
        "total_tax": "0.00",
        "total_discounts": "0.00",
        "currency": "PEN",
        "payment_gateway_names": ["Cash on Delivery (COD)"],
        "total_shipping_price_set": {"shop_money": {"amount": "10.00", "currency_code": "PEN"}},
        "tags": "web, promo",
        "note": "Entregar en la tarde",
        "customer": {"id": 777, "email": "maria.lopez@example.com", "first_name": "María", "last_name": "López"},
        "shipping_address": {
            "name": "María López",
            "last_name": "López",
            "phone": "+51 987 654 321",
            "address1": "Av. Arequipa 1234",
            "address2": "Dpto 301",
            "city": "Lince",
            "province": "Lima",
            "zip": "15046",
            "country": "Peru",
        },
        "line_items": [
            {"sku": "SKU-0001", "title": "Serum Vitamina C", "variant_title": "30ml", "price": "59.90", "quantity": 1},
            {"sku": "SKU-0002", "title": "Crema Noche", "variant_title": None, "price": "24.95", "quantity": 2},
        ],
    }
    order.update(overrides)
    return order


def kommo_lead_event(dni: str | None = "45871236", event: str = "add") -> dict:
    custom = [{"field_code": "PHONE", "values": [{"value": "+51 912 345 678"}]}]
    if dni:
        custom.append({"field_code": "DNI", "values": [{"value": dni}]})
    return {
        "leads": {
            event: [{
                "id": 9001,
                "name": "Venta web",
                "status_id": 142,
                "price": 150,
                "updated_at": 1715370000,
                "_embedded": {"contacts": [{"id": 3003, "name": "Carlos Mendoza", "custom_fields_values": custom}]},
            }],
        },
        "account": {"subdomain": "logiflow"},
    }
