"""LogiFlow models - re-exports all models and Base.metadata."""

from .base import Base, DocumentMixin, TimestampMixin, UTCDateTime
from .lead import Client, ShopifyLead, LEAD_COLLECTIONS
from .order import Order
from .inventory import InventoryItem
from .user import StaffUser, UserTableConfig
from .webhook import WebhookConfig

__all__ = [
    "Base",
    "DocumentMixin",
    "TimestampMixin",
    "UTCDateTime",
    "Client",
    "ShopifyLead",
    "LEAD_COLLECTIONS",
    "Order",
    "InventoryItem",
    "StaffUser",
    "UserTableConfig",
    "WebhookConfig",
]
