"""Kommo CRM client - OAuth token cache, API v4 calls, lead sync from orders."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import LogiFlowSettings, settings

log = logging.getLogger(__name__)

# Lifetime assumed for the long-lived token handed in through the environment
INITIAL_TOKEN_TTL_SECONDS = 365 * 24 * 3600
EXPIRY_BUFFER_SECONDS = 300

# Lead custom-field ids in the Kommo account
KOMMO_FIELD_IDS = {
    "PEDIDO": 985570,
    "DIRECCION": 630092,
    "PRODUCTO": 630096,
    "TIENDA": 1002512,
    "PROVINCIA": 630094,
    "COURIER": 630104,
    "MONTO_PENDIENTE": 1002220,
    "NOTA": 630108,
    "LINK_SHALOM": 1002224,
    "BOLETA_SHALOM": 1002226,
}
CONFIRMED_SALE_TAG = "Venta Confirmada LogiFlow"


class KommoError(Exception):
    """Kommo API or OAuth failure."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class KommoNotConfigured(KommoError):
    """Subdomain / tokens missing from the environment."""


@dataclass
class KommoToken:
    access_token: str
    refresh_token: str | None = None
    expires_in: int = INITIAL_TOKEN_TTL_SECONDS
    created_at: float = field(default_factory=time.time)

    @property
    def expires_at(self) -> float:
        return self.created_at + self.expires_in

    def is_expired(self, now: float | None = None) -> bool:
        """Expired within the 5 minute buffer. Without a refresh token it never expires."""
        if not self.refresh_token:
            return False
        now = time.time() if now is None else now
        return now > self.expires_at - EXPIRY_BUFFER_SECONDS


class KommoTokenCache:
    """Holds the current Kommo token and refreshes it when due.

    One cache per process; the lock makes concurrent callers share a single
    refresh instead of racing on the refresh token.
    """

    def __init__(
        self,
        cfg: LogiFlowSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock=time.time,
    ):
        self.cfg = cfg or settings
        self.transport = transport
        self.clock = clock
        self._token: KommoToken | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> KommoToken | None:
        return self._token

    def _initial_token(self) -> KommoToken:
        if not self.cfg.kommo_subdomain or not self.cfg.kommo_access_token:
            raise KommoNotConfigured("Kommo is not configured (LOGIFLOW_KOMMO_SUBDOMAIN / ACCESS_TOKEN)")
        return KommoToken(
            access_token=self.cfg.kommo_access_token,
            refresh_token=self.cfg.kommo_refresh_token or None,
            created_at=self.clock(),
        )

    async def get_access_token(self) -> str:
        async with self._lock:
            if self._token is None:
                self._token = self._initial_token()
            if self._token.is_expired(self.clock()):
                self._token = await self._refresh(self._token)
            return self._token.access_token

    async def _refresh(self, token: KommoToken) -> KommoToken:
        if not self.cfg.kommo_integration_id or not self.cfg.kommo_secret_key:
            raise KommoNotConfigured("Kommo integration id / secret key missing; cannot refresh token")

        log.info("Kommo token expired, refreshing")
        async with httpx.AsyncClient(timeout=self.cfg.http_timeout_seconds, transport=self.transport) as client:
            response = await client.post(
                self.cfg.kommo_token_url,
                json={
                    "client_id": self.cfg.kommo_integration_id,
                    "client_secret": self.cfg.kommo_secret_key,
                    "grant_type": "refresh_token",
                    "refresh_token": token.refresh_token,
                },
            )

        if response.status_code != 200:
            try:
                details = response.json() if response.content else {}
            except ValueError:
                details = {"raw": response.text}
            log.error("Kommo token refresh failed: %s %s", response.status_code, details)
            raise KommoError("Failed to refresh Kommo token", response.status_code, details)

        data = response.json()
        log.info("Kommo token refreshed")
        return KommoToken(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or token.refresh_token,
            expires_in=int(data.get("expires_in") or 86400),
            created_at=self.clock(),
        )


class KommoClient:
    """Minimal Kommo API v4 client.

    Usage:
        async with KommoClient(cache) as kommo:
            lead = await kommo.get_lead("123")
    """

    def __init__(self, cache: KommoTokenCache, *, transport: httpx.AsyncBaseTransport | None = None):
        self.cache = cache
        self._client = httpx.AsyncClient(
            base_url=cache.cfg.kommo_api_base,
            timeout=cache.cfg.http_timeout_seconds,
            transport=transport or cache.transport,
        )

    async def __aenter__(self) -> "KommoClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, params: dict | None = None, json: Any = None) -> dict:
        token = await self.cache.get_access_token()
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise KommoError(f"Kommo request failed: {e}") from e

        if response.status_code == 401:
            raise KommoError("Kommo rejected the access token", 401)
        if response.status_code == 204:
            return {}
        if response.is_error:
            log.error("Kommo %s %s -> %s: %s", method, path, response.status_code, response.text[:500])
            raise KommoError(
                f"Kommo API error: {response.status_code}",
                response.status_code,
                response.text[:1000],
            )
        return response.json() if response.content else {}

    async def get_lead(self, lead_id: str | int) -> dict:
        return await self._request("GET", f"leads/{lead_id}", params={"with": "contacts"})

    async def get_contact(self, contact_id: str | int) -> dict:
        return await self._request("GET", f"contacts/{contact_id}", params={"with": "leads"})

    async def search_leads(self, query: str, limit: int = 10) -> list[dict]:
        data = await self._request("GET", "leads", params={"query": query, "limit": limit, "with": "contacts"})
        return (data.get("_embedded") or {}).get("leads", [])

    async def update_lead(self, lead_id: str | int, payload: dict) -> dict:
        return await self._request("PATCH", f"leads/{lead_id}", json=payload)


def build_lead_update(order: dict, status_id: int) -> dict:
    """PATCH body that marks the Kommo lead as a confirmed sale for ``order``.

    Fields with no value are left out so they do not blank Kommo data.
    """
    envio = order.get("envio") or {}
    pago = order.get("pago") or {}
    notas = order.get("notas") or {}
    producto = ", ".join(f"{i.get('cantidad')}x {i.get('nombre')}" for i in order.get("items") or [])
    values = {
        "PEDIDO": order.get("id_pedido"),
        "DIRECCION": envio.get("direccion"),
        "PRODUCTO": producto,
        "TIENDA": (order.get("tienda") or {}).get("nombre"),
        "PROVINCIA": envio.get("provincia"),
        "COURIER": envio.get("courier"),
        "MONTO_PENDIENTE": pago.get("monto_pendiente"),
        "NOTA": notas.get("nota_pedido"),
        "LINK_SHALOM": envio.get("link_seguimiento"),
        "BOLETA_SHALOM": envio.get("nro_guia"),
    }
    custom_fields_values = [
        {"field_id": KOMMO_FIELD_IDS[name], "values": [{"value": value}]}
        for name, value in values.items()
        if value
    ]
    return {
        "id": int(order["kommo_lead_id"]),
        "price": pago.get("monto_total"),
        "status_id": status_id,
        "custom_fields_values": custom_fields_values,
        "_embedded": {"tags": [{"name": CONFIRMED_SALE_TAG}]},
    }


_token_cache: KommoTokenCache | None = None


def get_token_cache() -> KommoTokenCache:
    """Process-wide token cache (FastAPI dependency)."""
    global _token_cache
    if _token_cache is None:
        _token_cache = KommoTokenCache(settings)
    return _token_cache


async def sync_order_to_lead(cache: KommoTokenCache, order: dict) -> dict:
    """Push a confirmed order to its Kommo lead.

    Raises:
        ValueError: The order has no Kommo lead id.
        KommoError: Kommo rejected or failed the update.
    """
    if not order.get("kommo_lead_id"):
        raise ValueError("Kommo Lead ID or Order data is missing.")
    payload = build_lead_update(order, cache.cfg.kommo_confirmed_status_id)
    async with KommoClient(cache) as kommo:
        result = await kommo.update_lead(order["kommo_lead_id"], payload)
    log.info("Kommo lead %s updated from order %s", order["kommo_lead_id"], order.get("id_pedido"))
    return result
