"""Staff user service - CRUD, admin bootstrap and per-user table layouts."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import ADMIN_PERMISSIONS, DEFAULT_PERMISSIONS, UserRole
from ..models.user import StaffUser, UserTableConfig

log = logging.getLogger(__name__)


async def list_users(
    db: AsyncSession, *, rol: str | None = None, active_only: bool = False
) -> list[StaffUser]:
    stmt = select(StaffUser)
    if rol:
        stmt = stmt.where(StaffUser.rol == rol)
    if active_only:
        stmt = stmt.where(StaffUser.activo.is_(True))
    stmt = stmt.order_by(StaffUser.nombre)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: str) -> StaffUser | None:
    return await db.get(StaffUser, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> StaffUser | None:
    stmt = select(StaffUser).where(func.lower(StaffUser.email) == email.strip().lower())
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_user(db: AsyncSession, **kwargs) -> StaffUser:
    kwargs.setdefault("id_usuario", uuid.uuid4().hex)
    if not kwargs.get("permisos"):
        kwargs["permisos"] = dict(ADMIN_PERMISSIONS if kwargs.get("rol") == UserRole.ADMIN.value else DEFAULT_PERMISSIONS)
    user = StaffUser(**kwargs)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def update_user(db: AsyncSession, user_id: str, **kwargs) -> StaffUser | None:
    user = await get_user(db, user_id)
    if not user:
        return None
    for key, value in kwargs.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: str) -> bool:
    user = await get_user(db, user_id)
    if not user:
        return False
    await db.delete(user)
    await db.commit()
    return True


async def ensure_admin(db: AsyncSession, email: str, nombre: str) -> tuple[StaffUser, bool]:
    """Create the Admin staff record if no user has this e-mail. Returns (user, created)."""
    existing = await get_user_by_email(db, email)
    if existing:
        if existing.rol != UserRole.ADMIN.value or not existing.activo:
            existing.rol = UserRole.ADMIN.value
            existing.activo = True
            existing.permisos = dict(ADMIN_PERMISSIONS)
            await db.commit()
            await db.refresh(existing)
        return existing, False
    user = await create_user(
        db,
        nombre=nombre,
        email=email.strip().lower(),
        rol=UserRole.ADMIN.value,
        activo=True,
        permisos=dict(ADMIN_PERMISSIONS),
    )
    log.info("Admin user %s created", user.email)
    return user, True


# ── Table configuration ────────────────────────────────────────────────


async def get_table_config(db: AsyncSession, user_id: str, table_id: str) -> dict:
    config = await db.get(UserTableConfig, user_id)
    if not config:
        return {}
    return (config.tables or {}).get(table_id, {})


async def save_table_config(db: AsyncSession, user_id: str, table_id: str, layout: dict) -> dict:
    """Merge one table's column layout into the user's config document."""
    config = await db.get(UserTableConfig, user_id)
    if config is None:
        config = UserTableConfig(user_id=user_id, tables={})
        db.add(config)
    tables = dict(config.tables or {})
    tables[table_id] = {**tables.get(table_id, {}), **layout}
    config.tables = tables
    await db.commit()
    await db.refresh(config)
    return config.tables[table_id]
