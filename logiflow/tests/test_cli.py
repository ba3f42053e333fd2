"""CLI tests."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from logiflow import database
from logiflow.cli import app
from logiflow.config import settings
from logiflow.models import InventoryItem, Order, StaffUser


@pytest.fixture
def cli_db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the CLI at a throwaway SQLite file."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr(database, "engine", eng)
    monkeypatch.setattr(database, "async_session_factory", async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False))
    return eng


def _count(eng, model) -> int:
    async def run():
        try:
            async with async_sessionmaker(eng)() as session:
                return (await session.execute(select(func.count()).select_from(model))).scalar()
        finally:
            await eng.dispose()

    return asyncio.run(run())


def test_stores_lists_configured_stores(cli_runner):
    result = cli_runner.invoke(app, ["stores"])
    assert result.exit_code == 0
    assert "blumi" in result.output
    assert "cumbre" in result.output


def test_stores_without_configuration(cli_runner, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "shopify_stores", "")
    result = cli_runner.invoke(app, ["stores"])
    assert result.exit_code == 0
    assert "No Shopify stores configured" in result.output


def test_init_admin_user_is_idempotent(cli_runner, cli_db):
    result = cli_runner.invoke(app, ["init-admin-user", "--email", "boss@logiflow.pe", "--name", "Jefa"])
    assert result.exit_code == 0, result.output
    assert "created" in result.output

    result = cli_runner.invoke(app, ["init-admin-user", "--email", "boss@logiflow.pe", "--name", "Jefa"])
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert _count(cli_db, StaffUser) == 1


def test_init_admin_user_requires_email(cli_runner, cli_db, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "admin_email", "")
    result = cli_runner.invoke(app, ["init-admin-user"])
    assert result.exit_code == 1


def test_seed_loads_demo_data(cli_runner, cli_db):
    result = cli_runner.invoke(app, ["seed", "--yes"])
    assert result.exit_code == 0, result.output
    assert _count(cli_db, Order) == 3
    assert _count(cli_db, InventoryItem) == 6

    # Re-seeding clears first
    result = cli_runner.invoke(app, ["seed", "--yes"])
    assert result.exit_code == 0
    assert _count(cli_db, StaffUser) == 4


def test_seed_refuses_production(cli_runner, cli_db, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "environment", "production")
    result = cli_runner.invoke(app, ["seed", "--yes"])
    assert result.exit_code == 1
