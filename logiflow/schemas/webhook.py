"""Outbound webhook configuration schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..constants import WebhookEvent


class WebhookCreate(BaseModel):
    name: str = Field(min_length=1)
    url: str = Field(pattern=r"^https?://")
    event: WebhookEvent
    active: bool = True


class WebhookUpdate(BaseModel):
    name: str | None = None
    url: str | None = Field(default=None, pattern=r"^https?://")
    event: WebhookEvent | None = None
    active: bool | None = None


class WebhookResponse(BaseModel):
    id: str
    name: str
    url: str
    event: str
    active: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NotifyRequest(BaseModel):
    payload: dict
