"""LogiFlow configuration via pydantic-settings."""

from __future__ import annotations

import json

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class ShopifyStoreConfig(BaseModel):
    """One entry of the per-store table (slug -> credentials)."""

    name: str = ""
    domain: str = ""
    access_token: str = ""
    webhook_secret: str = ""
    api_version: str = "2023-10"
    active: bool = True

    @property
    def admin_api_url(self) -> str:
        return f"https://{self.domain}/admin/api/{self.api_version}"


class LogiFlowSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///logiflow.db"
    echo_sql: bool = False
    app_title: str = "LogiFlow"
    log_level: str = "INFO"
    timezone: str = "America/Lima"
    http_timeout_seconds: float = 30.0

    # Shared key for the Kommo / Make ingestion endpoints (?apiKey=...)
    ingestion_api_key: str = ""

    # JSON object: {"blumi": {"domain": "...", "webhook_secret": "...", ...}, ...}
    shopify_stores: str = ""

    # Kommo CRM (OAuth long-lived token + refresh)
    kommo_subdomain: str = ""
    kommo_integration_id: str = ""
    kommo_secret_key: str = ""
    kommo_access_token: str = ""
    kommo_refresh_token: str = ""
    kommo_confirmed_status_id: int = 79547911

    # Make.com (or any) scenario proxied by /api/notify
    notify_webhook_url: str = ""

    shops: str = "Blumi,Cumbre,Dearel,Trazto"

    admin_email: str = "admin@logiflow.pe"
    admin_name: str = "Administrador"

    model_config = {"env_prefix": "LOGIFLOW_", "env_file": ".env", "extra": "ignore"}

    @property
    def shop_names(self) -> list[str]:
        return [s.strip() for s in self.shops.split(",") if s.strip()]

    @property
    def shopify_store_map(self) -> dict[str, ShopifyStoreConfig]:
        """Parse the JSON store table; store ids are lower-cased."""
        if not self.shopify_stores.strip():
            return {}
        raw = json.loads(self.shopify_stores)
        if not isinstance(raw, dict):
            raise ValueError("LOGIFLOW_SHOPIFY_STORES must be a JSON object")
        stores: dict[str, ShopifyStoreConfig] = {}
        for slug, cfg in raw.items():
            store = ShopifyStoreConfig.model_validate(cfg or {})
            if not store.name:
                store.name = slug.capitalize()
            stores[slug.strip().lower()] = store
        return stores

    def shopify_store(self, store_id: str) -> ShopifyStoreConfig | None:
        store = self.shopify_store_map.get(store_id.strip().lower())
        if store is None or not store.active:
            return None
        return store

    @property
    def kommo_configured(self) -> bool:
        return bool(self.kommo_subdomain and self.kommo_access_token)

    @property
    def kommo_api_base(self) -> str:
        return f"https://{self.kommo_subdomain}.kommo.com/api/v4/"

    @property
    def kommo_token_url(self) -> str:
        return f"https://{self.kommo_subdomain}.kommo.com/oauth2/access_token"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = LogiFlowSettings()
