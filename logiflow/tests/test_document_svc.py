"""Tests for the merge-upsert document writer."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from logiflow.models import Client, ShopifyLead
from logiflow.models.base import Base
from logiflow.services import document_svc, lead_svc


@pytest.mark.asyncio
async def test_upsert_creates_then_merges(db: AsyncSession):
    doc, created = await document_svc.upsert_document(
        db, Client, "12345678",
        {"dni": "12345678", "nombres": "Ana", "celular": "999"},
        on_create={"call_status": "NUEVO"},
    )
    assert created is True
    assert doc.id == "12345678"
    assert doc.call_status == "NUEVO"

    doc, created = await document_svc.upsert_document(
        db, Client, "12345678",
        {"celular": "988"},
        on_create={"call_status": "SHOULD_NOT_APPLY"},
    )
    assert created is False
    assert doc.nombres == "Ana"
    assert doc.celular == "988"
    assert doc.call_status == "NUEVO"


@pytest.mark.asyncio
async def test_unknown_field_rejected(db: AsyncSession):
    with pytest.raises(ValueError):
        await document_svc.upsert_document(db, Client, "1", {"not_a_column": True})


@pytest.mark.asyncio
async def test_update_missing_document_returns_none(db: AsyncSession):
    assert await document_svc.update_document(db, ShopifyLead, "missing", nombres="x") is None
    assert await document_svc.delete_document(db, ShopifyLead, "missing") is False


@pytest.mark.asyncio
async def test_lead_documents_carry_collection(db: AsyncSession):
    stamp = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
    await document_svc.upsert_document(db, Client, "1", {"nombres": "Cliente", "last_updated": stamp})
    await document_svc.upsert_document(db, ShopifyLead, "2", {"nombres": "Shopify", "source": "shopify"})

    leads = {lead["id"]: lead for lead in await lead_svc.all_leads(db)}
    assert leads["1"]["collection"] == "clients"
    assert leads["1"]["last_updated"] == stamp
    assert leads["2"]["collection"] == "shopify_leads"
    assert "created_at" not in leads["2"]


@pytest.mark.asyncio
async def test_unknown_collection(db: AsyncSession):
    with pytest.raises(ValueError):
        lead_svc.lead_model("orders")


@pytest.mark.asyncio
async def test_overlapping_creates_merge_into_one_document(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'docs.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as first, factory() as second:
            results = await asyncio.gather(
                document_svc.upsert_document(first, Client, "123", {"dni": "123", "nombres": "A"}, on_create={"call_status": "NUEVO"}),
                document_svc.upsert_document(second, Client, "123", {"dni": "123", "nombres": "B"}, on_create={"call_status": "NUEVO"}),
            )
        assert sorted(created for _, created in results) == [False, True]
        merged = next(doc for doc, created in results if not created)

        async with factory() as session:
            rows = (await session.execute(select(Client))).scalars().all()
        assert len(rows) == 1
        assert rows[0].nombres == merged.nombres
        assert rows[0].call_status == "NUEVO"
    finally:
        await eng.dispose()
