"""Staff user and table-config schemas."""

from __future__ import annotations

from pydantic import BaseModel

from ..constants import UserRole


class UserCreate(BaseModel):
    nombre: str
    email: str
    rol: UserRole = UserRole.CALL_CENTER
    activo: bool = True
    permisos: dict | None = None
    avatar: str | None = None


class UserUpdate(BaseModel):
    nombre: str | None = None
    email: str | None = None
    rol: UserRole | None = None
    activo: bool | None = None
    permisos: dict | None = None
    avatar: str | None = None


class UserResponse(BaseModel):
    id_usuario: str
    nombre: str
    email: str
    rol: str
    activo: bool
    permisos: dict
    avatar: str | None = None

    model_config = {"from_attributes": True}


class TableLayout(BaseModel):
    visible_columns: list[str] | None = None
    column_order: list[str] | None = None
    column_widths: dict[str, int] | None = None
