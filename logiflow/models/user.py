"""Staff user and per-user table configuration models."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, DocumentMixin, TimestampMixin


class StaffUser(DocumentMixin, TimestampMixin, Base):
    __tablename__ = "users"

    id_usuario: Mapped[str] = mapped_column(String(100), primary_key=True)
    nombre: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    rol: Mapped[str] = mapped_column(String(50), default="Call Center")
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    permisos: Mapped[dict] = mapped_column(JSON, default=dict)
    avatar: Mapped[str | None] = mapped_column(String(500), default=None)

    def __repr__(self) -> str:
        return f"<StaffUser {self.email} ({self.rol})>"


class UserTableConfig(DocumentMixin, TimestampMixin, Base):
    """Column layout per table for one user: {table_id: {columns, order, widths}}."""

    __tablename__ = "user_table_configs"

    user_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    tables: Mapped[dict] = mapped_column(JSON, default=dict)
