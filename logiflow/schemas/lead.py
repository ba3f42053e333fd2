"""Lead / client schemas."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, field_validator

from ..constants import CallStatus, LeadSource


class ClientCreate(BaseModel):
    dni: str
    nombres: str
    apellidos: str | None = None
    celular: str = ""
    email: str | None = None
    direccion: str | None = None
    distrito: str | None = None
    provincia: str | None = None
    source: LeadSource = LeadSource.MANUAL
    tienda_origen: str | None = None
    producto: str | None = None
    notas_agente: str | None = None


class LeadUpdate(BaseModel):
    nombres: str | None = None
    apellidos: str | None = None
    celular: str | None = None
    email: str | None = None
    direccion: str | None = None
    distrito: str | None = None
    provincia: str | None = None
    call_status: CallStatus | None = None
    assigned_agent_id: str | None = None
    assigned_agent_name: str | None = None
    assigned_agent_avatar: str | None = None
    producto: str | None = None
    notas_agente: str | None = None

    @field_validator("nombres", "celular", "call_status", mode="before")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class LeadResponse(BaseModel):
    id: str
    collection: str | None = None
    dni: str | None = None
    nombres: str = ""
    apellidos: str | None = None
    celular: str = ""
    email: str | None = None
    direccion: str | None = None
    direccion_referencia: str | None = None
    distrito: str | None = None
    provincia: str | None = None
    codigo_postal: str | None = None
    pais: str | None = None
    source: str
    tienda_origen: str | None = None
    call_status: str
    assigned_agent_id: str | None = None
    assigned_agent_name: str | None = None
    first_interaction_at: datetime | None = None
    last_updated: datetime | None = None
    kommo_lead_id: str | None = None
    kommo_contact_id: str | None = None
    etapa_kommo: str | None = None
    shopify_order_id: str | None = None
    shopify_order_number: str | None = None
    shopify_items: list[dict] | None = None
    shopify_payment_details: dict | None = None
    financial_status: str | None = None
    fulfillment_status: str | None = None
    notas_cliente: str | None = None
    tags: list[str] | None = None
    producto: str | None = None
    notas_agente: str | None = None

    model_config = {"from_attributes": True}


class DateTimeFilterIn(BaseModel):
    field: str = "last_updated"
    date_from: date | None = None
    date_to: date | None = None
    time_from: time | None = None
    time_to: time | None = None


class QueueQuery(BaseModel):
    search: str | None = None
    columns: dict[str, list[str]] = {}
    datetimes: list[DateTimeFilterIn] = []
    include_terminal: bool = False
