"""Order routes - Kanban board, confirmation and status actions."""

from __future__ import annotations

from datetime import date

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import WebhookEvent
from ..database import get_db
from ..schemas.order import OrderConfirm, OrderResponse, OrderUpdate, StatusChange
from ..services import order_svc, webhook_svc
from ..services.order_svc import Actor, OrderError, OrderFilters
from .deps import get_actor

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _filters(
    shop: list[str] = Query(default=[]),
    assigned_user_id: list[str] = Query(default=[]),
    status: list[str] = Query(default=[]),
    payment_method: list[str] = Query(default=[]),
    courier: list[str] = Query(default=[]),
    date_from: date | None = None,
    date_to: date | None = None,
) -> OrderFilters:
    return OrderFilters(
        shops=shop,
        assigned_user_ids=assigned_user_id,
        statuses=status,
        payment_methods=payment_method,
        couriers=courier,
        date_from=date_from,
        date_to=date_to,
    )


def _dump(order) -> dict:
    return OrderResponse.model_validate(order).model_dump(mode="json")


@router.get("", response_model=list[OrderResponse])
async def order_list(
    filters: OrderFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    return await order_svc.list_orders(db, filters)


@router.get("/board")
async def order_board(
    filters: OrderFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
):
    """Orders grouped into Kanban columns, in column order."""
    board = order_svc.group_board(await order_svc.list_orders(db, filters))
    return {
        "columns": [
            {"estado": status, "count": len(orders), "orders": [_dump(o) for o in orders]}
            for status, orders in board.items()
        ]
    }


@router.get("/{order_id}", response_model=OrderResponse)
async def order_detail(order_id: str, db: AsyncSession = Depends(get_db)):
    order = await order_svc.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", status_code=201)
async def order_confirm(
    body: OrderConfirm,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    transport: httpx.AsyncBaseTransport | None = Depends(webhook_svc.get_http_transport),
):
    """Confirm a sale from the call center and move it to preparation."""
    if body.id_pedido and not await order_svc.get_order(db, body.id_pedido):
        raise HTTPException(status_code=404, detail="Order not found")

    data = body.model_dump(mode="json")
    data["items"] = [item.as_item() for item in body.items]
    order, created = await order_svc.confirm_sale(db, data, actor)
    event = WebhookEvent.ORDER_CREATED if created else WebhookEvent.ORDER_STATUS_CHANGED
    deliveries = await webhook_svc.dispatch_event(db, event, order.to_document(), transport=transport)
    return {"order": _dump(order), "created": created, "webhooks": deliveries}


@router.patch("/{order_id}", response_model=OrderResponse)
async def order_update(
    order_id: str,
    body: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    order = await order_svc.update_order(db, order_id, actor, **body.model_dump(exclude_unset=True))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/{order_id}/status")
async def order_status(
    order_id: str,
    body: StatusChange,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    transport: httpx.AsyncBaseTransport | None = Depends(webhook_svc.get_http_transport),
):
    order = await order_svc.change_status(
        db, order_id, body.estado, actor,
        detalle=body.detalle, motivo_anulacion=body.motivo_anulacion,
    )
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    deliveries = await webhook_svc.dispatch_event(
        db, order_svc.status_event(body.estado), order.to_document(), transport=transport
    )
    return {"order": _dump(order), "webhooks": deliveries}


@router.post("/{order_id}/stock-check")
async def order_stock_check(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    transport: httpx.AsyncBaseTransport | None = Depends(webhook_svc.get_http_transport),
):
    result = await order_svc.check_stock(db, order_id, actor)
    if result is None:
        raise HTTPException(status_code=404, detail="Order not found")
    order, all_confirmed = result
    deliveries = []
    if all_confirmed:
        deliveries = await webhook_svc.dispatch_event(
            db, WebhookEvent.STOCK_CONFIRMED, order.to_document(), transport=transport
        )
    return {"order": _dump(order), "all_confirmed": all_confirmed, "webhooks": deliveries}


@router.post("/{order_id}/return-to-call-center", response_model=OrderResponse)
async def order_return_to_call_center(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        order = await order_svc.return_to_call_center(db, order_id, actor)
    except OrderError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
