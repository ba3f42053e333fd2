"""Document service - merge-upserts keyed by a natural identifier.

Writes follow document-store merge semantics: top-level fields given in a
write replace the stored ones, fields not given are left alone, and the last
writer wins. There is no version check and no idempotency ledger; re-sending
the same fields is a no-op on the stored values.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import Base

log = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)

_DIALECT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


def _check_fields(model: type[Base], fields: dict[str, Any]) -> None:
    allowed = model.document_fields()
    for key in fields:
        if key not in allowed:
            raise ValueError(f"{model.__name__} has no field '{key}'")


def _apply(doc: Base, fields: dict[str, Any]) -> None:
    _check_fields(type(doc), fields)
    for key, value in fields.items():
        setattr(doc, key, value)


async def _insert_if_absent(db: AsyncSession, model: type[M], key: str, values: dict[str, Any]) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. True when this call created the row."""
    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Document upserts are not supported on {dialect}")
    pk = model.__mapper__.primary_key[0].key
    stmt = insert(model.__table__).values({**values, pk: key}).on_conflict_do_nothing(index_elements=[pk])
    result = await db.execute(stmt)
    return result.rowcount == 1


async def get_document(db: AsyncSession, model: type[M], key: str) -> M | None:
    return await db.get(model, key)


async def upsert_document(
    db: AsyncSession,
    model: type[M],
    key: str,
    fields: dict[str, Any],
    *,
    on_create: dict[str, Any] | None = None,
    commit: bool = True,
) -> tuple[M, bool]:
    """Create or merge the document ``key``. Returns (document, created).

    ``on_create`` fields seed a new document only and are never re-applied,
    so state owned by other writers (e.g. call status) survives re-delivery.
    The create is an ``ON CONFLICT DO NOTHING`` insert: when a concurrent
    writer creates the same key first, this write merges into its row.
    """
    doc = await db.get(model, key)
    created = False
    if doc is None:
        values = {**(on_create or {}), **fields}
        _check_fields(model, values)
        created = await _insert_if_absent(db, model, key, values)
        doc = await db.get(model, key)
    if not created:
        _apply(doc, fields)

    if commit:
        await db.commit()
        await db.refresh(doc)
    else:
        await db.flush()
    log.info("%s %s/%s", "created" if created else "merged", model.__tablename__, key)
    return doc, created


async def update_document(db: AsyncSession, model: type[M], key: str, **fields) -> M | None:
    """Merge fields into an existing document; None if it does not exist."""
    doc = await db.get(model, key)
    if doc is None:
        return None
    _apply(doc, fields)
    await db.commit()
    await db.refresh(doc)
    return doc


async def list_documents(db: AsyncSession, model: type[M]) -> list[M]:
    result = await db.execute(select(model))
    return list(result.scalars().all())


async def delete_document(db: AsyncSession, model: type[M], key: str) -> bool:
    doc = await db.get(model, key)
    if doc is None:
        return False
    await db.delete(doc)
    await db.commit()
    return True
