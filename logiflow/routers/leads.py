"""Call-center queue, lead edits and client CRUD."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.lead import LEAD_COLLECTIONS
from ..schemas.lead import ClientCreate, LeadResponse, LeadUpdate, QueueQuery
from ..services import lead_svc
from ..services.queue_svc import DateTimeFilter, QueueFilters

router = APIRouter(prefix="/api", tags=["leads"])


def _collection(collection: str) -> str:
    if collection not in LEAD_COLLECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown collection '{collection}'")
    return collection


@router.get("/leads/queue", response_model=list[LeadResponse])
async def queue(
    db: AsyncSession = Depends(get_db),
    search: str | None = None,
    call_status: list[str] = Query(default=[]),
    tienda_origen: list[str] = Query(default=[]),
    source: list[str] = Query(default=[]),
):
    columns = {"call_status": call_status, "tienda_origen": tienda_origen, "source": source}
    filters = QueueFilters(search=search, columns={k: v for k, v in columns.items() if v})
    return await lead_svc.call_center_queue(db, filters)


@router.post("/leads/queue", response_model=list[LeadResponse])
async def queue_filtered(query: QueueQuery, db: AsyncSession = Depends(get_db)):
    """Queue with column, date-range and time-of-day filters."""
    filters = QueueFilters(
        search=query.search,
        columns=query.columns,
        datetimes=[DateTimeFilter(**f.model_dump()) for f in query.datetimes],
        include_terminal=query.include_terminal,
    )
    return await lead_svc.call_center_queue(db, filters)


@router.get("/leads/{collection}/{lead_id}", response_model=LeadResponse)
async def lead_detail(collection: str, lead_id: str, db: AsyncSession = Depends(get_db)):
    lead = await lead_svc.get_lead(db, _collection(collection), lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead_svc.lead_document(lead)


@router.patch("/leads/{collection}/{lead_id}", response_model=LeadResponse)
async def lead_update(
    collection: str,
    lead_id: str,
    body: LeadUpdate,
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(mode="json", exclude_unset=True)
    lead = await lead_svc.update_lead(db, _collection(collection), lead_id, **fields)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead_svc.lead_document(lead)


@router.get("/clients", response_model=list[LeadResponse])
async def client_list(
    db: AsyncSession = Depends(get_db),
    search: str | None = None,
    source: str | None = None,
    page: int = 1,
):
    per_page = 100
    clients = await lead_svc.list_clients(
        db, search=search, source=source, offset=(max(page, 1) - 1) * per_page, limit=per_page
    )
    return [lead_svc.lead_document(c) for c in clients]


@router.post("/clients", response_model=LeadResponse)
async def client_save(body: ClientCreate, db: AsyncSession = Depends(get_db)):
    fields = body.model_dump(mode="json", exclude={"dni"}, exclude_none=True)
    client, _ = await lead_svc.save_client(db, body.dni, **fields)
    return lead_svc.lead_document(client)


@router.delete("/clients/{client_id}")
async def client_delete(client_id: str, db: AsyncSession = Depends(get_db)):
    if not await lead_svc.delete_client(db, client_id):
        raise HTTPException(status_code=404, detail="Client not found")
    return {"deleted": True}
