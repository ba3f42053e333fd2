"""FastAPI dependencies shared by the dashboard routers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..services import user_svc
from ..services.order_svc import Actor

USER_HEADER = "x-user-id"


async def get_actor(request: Request, db: AsyncSession = Depends(get_db)) -> Actor:
    """Resolve the acting staff member from ``X-User-Id``; anonymous calls act as SYSTEM."""
    user_id = request.headers.get(USER_HEADER, "").strip()
    if not user_id:
        return Actor()
    user = await user_svc.get_user(db, user_id)
    if not user or not user.activo:
        raise HTTPException(status_code=403, detail=f"Unknown or inactive user '{user_id}'")
    return Actor(id_usuario=user.id_usuario, nombre=user.nombre, rol=user.rol)
