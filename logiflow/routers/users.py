"""Staff user routes and per-user table layouts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.user import TableLayout, UserCreate, UserResponse, UserUpdate
from ..services import user_svc

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def user_list(
    db: AsyncSession = Depends(get_db),
    rol: str | None = None,
    active_only: bool = False,
):
    return await user_svc.list_users(db, rol=rol, active_only=active_only)


@router.post("", response_model=UserResponse, status_code=201)
async def user_create(body: UserCreate, db: AsyncSession = Depends(get_db)):
    if await user_svc.get_user_by_email(db, body.email):
        raise HTTPException(status_code=409, detail="Email already registered")
    return await user_svc.create_user(db, **body.model_dump(mode="json"))


@router.get("/{user_id}", response_model=UserResponse)
async def user_detail(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await user_svc.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def user_update(user_id: str, body: UserUpdate, db: AsyncSession = Depends(get_db)):
    user = await user_svc.update_user(db, user_id, **body.model_dump(mode="json", exclude_unset=True))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.delete("/{user_id}")
async def user_delete(user_id: str, db: AsyncSession = Depends(get_db)):
    if not await user_svc.delete_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"deleted": True}


@router.get("/{user_id}/table-config/{table_id}")
async def table_config_get(user_id: str, table_id: str, db: AsyncSession = Depends(get_db)):
    return await user_svc.get_table_config(db, user_id, table_id)


@router.put("/{user_id}/table-config/{table_id}")
async def table_config_save(
    user_id: str,
    table_id: str,
    body: TableLayout,
    db: AsyncSession = Depends(get_db),
):
    return await user_svc.save_table_config(db, user_id, table_id, body.model_dump(exclude_none=True))
