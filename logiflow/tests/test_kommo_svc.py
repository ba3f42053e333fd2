"""Tests for the Kommo token cache, API client and lead sync."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from httpx import AsyncClient

from conftest import API_KEY, kommo_lead_event
from logiflow.config import LogiFlowSettings
from logiflow.ingestion.kommo import build_client, extract_custom_fields, MissingDNIError
from logiflow.services import kommo_svc
from logiflow.services.kommo_svc import (
    CONFIRMED_SALE_TAG,
    KOMMO_FIELD_IDS,
    KommoClient,
    KommoError,
    KommoNotConfigured,
    KommoToken,
    KommoTokenCache,
    build_lead_update,
)


def _cfg(**overrides) -> LogiFlowSettings:
    values = {
        "kommo_subdomain": "logiflow",
        "kommo_integration_id": "client-id",
        "kommo_secret_key": "client-secret",
        "kommo_access_token": "initial-token",
        "kommo_refresh_token": "refresh-1",
        "kommo_confirmed_status_id": 79547911,
    }
    values.update(overrides)
    return LogiFlowSettings(**values)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class KommoApi:
    """MockTransport handler standing in for the Kommo OAuth and v4 endpoints."""

    def __init__(self, refresh_status: int = 200):
        self.refresh_status = refresh_status
        self.refresh_calls = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth2/access_token":
            self.refresh_calls += 1
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"hint": "Token has been revoked"})
            body = json.loads(request.content)
            assert body["grant_type"] == "refresh_token"
            return httpx.Response(200, json={
                "access_token": f"token-{self.refresh_calls}",
                "refresh_token": f"refresh-{self.refresh_calls + 1}",
                "expires_in": 86400,
            })
        if request.headers.get("authorization") == "Bearer revoked":
            return httpx.Response(401, json={"title": "Unauthorized"})
        if request.method == "PATCH":
            return httpx.Response(200, json={"id": 9001, "updated_at": 1715370000})
        if request.url.path == "/api/v4/leads/404":
            return httpx.Response(404, json={"title": "Not found"})
        return httpx.Response(200, json={"id": 9001, "name": "Venta web"})


class TestKommoToken:
    def test_token_without_refresh_never_expires(self):
        token = KommoToken(access_token="a", refresh_token=None, expires_in=10, created_at=0)
        assert token.is_expired(now=10_000) is False

    def test_expiry_buffer(self):
        token = KommoToken(access_token="a", refresh_token="r", expires_in=3600, created_at=0)
        assert token.is_expired(now=3600 - 301) is False
        assert token.is_expired(now=3600 - 299) is True


class TestTokenCache:
    @pytest.mark.asyncio
    async def test_initial_token_is_used_until_expiry(self):
        api = KommoApi()
        clock = FakeClock()
        cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(api), clock=clock)

        assert await cache.get_access_token() == "initial-token"
        assert api.refresh_calls == 0

        clock.now += kommo_svc.INITIAL_TOKEN_TTL_SECONDS
        assert await cache.get_access_token() == "token-1"
        assert cache.token.refresh_token == "refresh-2"
        assert api.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        api = KommoApi()
        clock = FakeClock()
        cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(api), clock=clock)
        await cache.get_access_token()
        clock.now += kommo_svc.INITIAL_TOKEN_TTL_SECONDS

        tokens = await asyncio.gather(*(cache.get_access_token() for _ in range(5)))
        assert set(tokens) == {"token-1"}
        assert api.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_refresh_failure_raises(self):
        clock = FakeClock()
        cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(KommoApi(refresh_status=400)), clock=clock)
        await cache.get_access_token()
        clock.now += kommo_svc.INITIAL_TOKEN_TTL_SECONDS

        with pytest.raises(KommoError) as exc_info:
            await cache.get_access_token()
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_not_configured(self):
        cache = KommoTokenCache(_cfg(kommo_access_token=""))
        with pytest.raises(KommoNotConfigured):
            await cache.get_access_token()


class TestKommoClient:
    @pytest.mark.asyncio
    async def test_requests_carry_bearer_token(self):
        api = KommoApi()
        cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(api))
        async with KommoClient(cache) as kommo:
            lead = await kommo.get_lead(9001)

        assert lead["name"] == "Venta web"
        request = api.requests[-1]
        assert str(request.url) == "https://logiflow.kommo.com/api/v4/leads/9001?with=contacts"
        assert request.headers["authorization"] == "Bearer initial-token"

    @pytest.mark.asyncio
    async def test_unauthorized_and_errors(self):
        api = KommoApi()
        cache = KommoTokenCache(_cfg(kommo_access_token="revoked"), transport=httpx.MockTransport(api))
        async with KommoClient(cache) as kommo:
            with pytest.raises(KommoError) as exc_info:
                await kommo.get_lead(1)
        assert exc_info.value.status_code == 401

        cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(api))
        async with KommoClient(cache) as kommo:
            with pytest.raises(KommoError) as exc_info:
                await kommo.get_lead(404)
        assert exc_info.value.status_code == 404


class TestBuildLeadUpdate:
    order = {
        "id_pedido": "PED-1",
        "kommo_lead_id": "9001",
        "tienda": {"nombre": "Blumi"},
        "items": [{"nombre": "Serum", "cantidad": 2}, {"nombre": "Crema", "cantidad": 1}],
        "pago": {"monto_total": 150.0, "monto_pendiente": 150.0},
        "envio": {"direccion": "Av. Arequipa 1234", "provincia": "Lima", "courier": "INTERNO", "nro_guia": None},
        "notas": {"nota_pedido": ""},
    }

    def test_payload(self):
        payload = build_lead_update(self.order, 79547911)
        values = {f["field_id"]: f["values"][0]["value"] for f in payload["custom_fields_values"]}

        assert payload["id"] == 9001
        assert payload["status_id"] == 79547911
        assert payload["price"] == 150.0
        assert payload["_embedded"]["tags"] == [{"name": CONFIRMED_SALE_TAG}]
        assert values[KOMMO_FIELD_IDS["PEDIDO"]] == "PED-1"
        assert values[KOMMO_FIELD_IDS["PRODUCTO"]] == "2x Serum, 1x Crema"
        assert values[KOMMO_FIELD_IDS["TIENDA"]] == "Blumi"
        # Empty values are not sent
        assert KOMMO_FIELD_IDS["NOTA"] not in values
        assert KOMMO_FIELD_IDS["BOLETA_SHALOM"] not in values


class TestKommoNormalizer:
    def test_custom_fields_by_code_and_name(self):
        entity = {
            "custom_fields_values": [{"field_code": "PHONE", "values": [{"value": "999"}]}],
            "custom_fields": [
                {"name": "DNI", "values": [{"value": " 123 "}]},
                {"name": "Otro", "values": [{"value": "x"}]},
            ],
        }
        assert extract_custom_fields(entity) == {"PHONE": "999", "DNI": "123"}

    def test_build_client_requires_dni(self):
        lead = kommo_lead_event(dni=None)["leads"]["add"][0]
        with pytest.raises(MissingDNIError):
            build_client(lead)

    def test_build_client_write_once_fields(self):
        lead = kommo_lead_event()["leads"]["add"][0]
        normalized = build_client(lead)
        assert normalized.key == "45871236"
        assert normalized.on_create["call_status"] == "NUEVO"
        assert normalized.on_create["provincia"] == "Lima"
        assert "call_status" not in normalized.fields


@pytest.mark.asyncio
async def test_update_lead_route(client: AsyncClient):
    from logiflow.app import app

    api = KommoApi()
    cache = KommoTokenCache(_cfg(), transport=httpx.MockTransport(api))
    app.dependency_overrides[kommo_svc.get_token_cache] = lambda: cache

    order_id = (await client.post(f"/api/webhooks/kommo?apiKey={API_KEY}", json=kommo_lead_event())).json()["orderId"]
    resp = await client.post("/api/kommo/update-lead", json={"order_id": order_id})
    assert resp.status_code == 200
    patch = api.requests[-1]
    assert patch.method == "PATCH"
    assert patch.url.path == "/api/v4/leads/9001"
    assert json.loads(patch.content)["status_id"] == 79547911

    assert (await client.post("/api/kommo/update-lead", json={"order_id": "nope"})).status_code == 404

    manual = (await client.post("/api/orders", json={
        "cliente": {"dni": "1", "nombres": "Ana"},
        "pago": {"monto_total": 10},
    })).json()["order"]["id_pedido"]
    resp = await client.post("/api/kommo/update-lead", json={"order_id": manual})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_lead_route_not_configured(client: AsyncClient):
    from logiflow.app import app

    cache = KommoTokenCache(_cfg(kommo_access_token=""))
    app.dependency_overrides[kommo_svc.get_token_cache] = lambda: cache

    order_id = (await client.post(f"/api/webhooks/kommo?apiKey={API_KEY}", json=kommo_lead_event())).json()["orderId"]
    resp = await client.post("/api/kommo/update-lead", json={"order_id": order_id})
    assert resp.status_code == 500
