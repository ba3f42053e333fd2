"""Lead models - call-center clients and Shopify leads share one shape."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, DocumentMixin, TimestampMixin, UTCDateTime


class LeadMixin:
    dni: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    nombres: Mapped[str] = mapped_column(String(255), default="")
    apellidos: Mapped[str | None] = mapped_column(String(255), default=None)
    celular: Mapped[str] = mapped_column(String(50), default="")
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    direccion: Mapped[str | None] = mapped_column(Text, default=None)
    direccion_referencia: Mapped[str | None] = mapped_column(Text, default=None)
    distrito: Mapped[str | None] = mapped_column(String(100), default=None)
    provincia: Mapped[str | None] = mapped_column(String(100), default=None)
    codigo_postal: Mapped[str | None] = mapped_column(String(20), default=None)
    pais: Mapped[str | None] = mapped_column(String(100), default=None)
    source: Mapped[str] = mapped_column(String(20), default="manual")  # manual, shopify, kommo
    tienda_origen: Mapped[str | None] = mapped_column(String(100), default=None)

    # Call-center workflow
    call_status: Mapped[str] = mapped_column(String(30), default="NUEVO", index=True)
    assigned_agent_id: Mapped[str | None] = mapped_column(String(100), default=None)
    assigned_agent_name: Mapped[str | None] = mapped_column(String(255), default=None)
    assigned_agent_avatar: Mapped[str | None] = mapped_column(String(500), default=None)
    first_interaction_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)
    last_updated: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None, index=True)

    # Kommo
    kommo_lead_id: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    kommo_contact_id: Mapped[str | None] = mapped_column(String(50), default=None)
    etapa_kommo: Mapped[str | None] = mapped_column(String(100), default=None)
    last_updated_from_kommo: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)

    # Shopify
    shopify_order_id: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    shopify_order_number: Mapped[str | None] = mapped_column(String(50), default=None)
    shopify_customer_id: Mapped[str | None] = mapped_column(String(50), default=None)
    shopify_items: Mapped[list | None] = mapped_column(JSON, default=None)
    shopify_payment_details: Mapped[dict | None] = mapped_column(JSON, default=None)
    financial_status: Mapped[str | None] = mapped_column(String(50), default=None)
    fulfillment_status: Mapped[str | None] = mapped_column(String(50), default=None)
    etapa_shopify: Mapped[str | None] = mapped_column(String(100), default=None)
    created_time: Mapped[str | None] = mapped_column(String(50), default=None)
    confirmed_at: Mapped[str | None] = mapped_column(String(50), default=None)
    notas_cliente: Mapped[str | None] = mapped_column(Text, default=None)
    tags: Mapped[list | None] = mapped_column(JSON, default=None)

    producto: Mapped[str | None] = mapped_column(String(255), default=None)
    notas_agente: Mapped[str | None] = mapped_column(Text, default=None)


class Client(DocumentMixin, LeadMixin, TimestampMixin, Base):
    """`clients` collection, keyed by DNI (or `KOMMO-<contactId>`)."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)

    def __repr__(self) -> str:
        return f"<Client {self.id} {self.call_status}>"


class ShopifyLead(DocumentMixin, LeadMixin, TimestampMixin, Base):
    """`shopify_leads` collection, keyed by Shopify order id."""

    __tablename__ = "shopify_leads"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)

    def __repr__(self) -> str:
        return f"<ShopifyLead {self.id} {self.call_status}>"


LEAD_COLLECTIONS: dict[str, type[Client] | type[ShopifyLead]] = {
    "clients": Client,
    "shopify_leads": ShopifyLead,
}
