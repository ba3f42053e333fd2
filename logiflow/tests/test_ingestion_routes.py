"""End-to-end ingestion tests: Shopify webhooks, Kommo hooks and data ingestion."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from conftest import API_KEY, STORE_SECRET, kommo_lead_event, shopify_order
from logiflow.security.webhooks import shopify_signature


async def _post_shopify(client: AsyncClient, data: dict, store: str = "blumi"):
    body = json.dumps(data).encode("utf-8")
    return await client.post(
        f"/api/webhooks/shopify/{store}",
        content=body,
        headers={"X-Shopify-Hmac-Sha256": shopify_signature(body, STORE_SECRET), "Content-Type": "application/json"},
    )


@pytest.mark.asyncio
async def test_shopify_order_becomes_queue_lead(client: AsyncClient):
    resp = await _post_shopify(client, shopify_order())
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "collection": "shopify_leads",
        "id": "5551234567",
        "created": True,
        "store": "Blumi",
    }

    lead = (await client.get("/api/leads/shopify_leads/5551234567")).json()
    assert lead["nombres"] == "María López"
    assert lead["celular"] == "987654321"
    assert lead["call_status"] == "NUEVO"
    assert lead["tienda_origen"] == "Blumi"
    assert len(lead["shopify_items"]) == 2

    queue = (await client.get("/api/leads/queue")).json()
    assert [entry["id"] for entry in queue] == ["5551234567"]


@pytest.mark.asyncio
async def test_shopify_redelivery_is_idempotent(client: AsyncClient):
    await _post_shopify(client, shopify_order())
    first = (await client.get("/api/leads/shopify_leads/5551234567")).json()

    resp = await _post_shopify(client, shopify_order())
    assert resp.json()["created"] is False
    second = (await client.get("/api/leads/shopify_leads/5551234567")).json()
    assert second == first


@pytest.mark.asyncio
async def test_shopify_redelivery_keeps_agent_state(client: AsyncClient):
    await _post_shopify(client, shopify_order())
    resp = await client.patch(
        "/api/leads/shopify_leads/5551234567",
        json={"call_status": "INTENTO_1", "notas_agente": "Llamar mañana"},
    )
    assert resp.status_code == 200

    await _post_shopify(client, shopify_order(financial_status="paid", updated_at="2024-05-11T09:00:00-05:00"))
    lead = (await client.get("/api/leads/shopify_leads/5551234567")).json()
    assert lead["call_status"] == "INTENTO_1"
    assert lead["notas_agente"] == "Llamar mañana"
    assert lead["financial_status"] == "paid"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["nombres", "celular", "call_status"])
async def test_lead_edit_rejects_null_for_required_fields(client: AsyncClient, field: str):
    resp = await client.post("/api/clients", json={"dni": "1", "nombres": "X", "email": "x@mail.pe"})
    assert resp.status_code == 200

    resp = await client.patch("/api/leads/clients/1", json={field: None})
    assert resp.status_code == 422

    resp = await client.patch("/api/leads/clients/1", json={"email": None})
    assert resp.status_code == 200
    lead = resp.json()
    assert lead["email"] is None
    assert lead["nombres"] == "X"
    assert lead["call_status"] == "NUEVO"


@pytest.mark.asyncio
async def test_kommo_lead_merges_client_by_dni(client: AsyncClient):
    resp = await client.post(f"/api/kommo-webhook?apiKey={API_KEY}", json=kommo_lead_event())
    assert resp.status_code == 200
    assert resp.json()["id"] == "45871236"
    assert resp.json()["created"] is True

    resp = await client.post(f"/api/kommo-webhook?apiKey={API_KEY}", json=kommo_lead_event(event="update"))
    assert resp.json()["created"] is False

    client_doc = (await client.get("/api/leads/clients/45871236")).json()
    assert client_doc["nombres"] == "Carlos Mendoza"
    assert client_doc["celular"] == "912345678"
    assert client_doc["source"] == "kommo"
    assert client_doc["kommo_lead_id"] == "9001"
    assert client_doc["provincia"] == "Lima"


@pytest.mark.asyncio
async def test_kommo_without_dni_is_400_and_writes_nothing(client: AsyncClient):
    resp = await client.post(f"/api/data-ingestion?apiKey={API_KEY}", json=kommo_lead_event(dni=None))
    assert resp.status_code == 400
    assert "DNI" in resp.json()["detail"]

    assert (await client.get("/api/clients")).json() == []
    assert (await client.get("/api/leads/queue")).json() == []


@pytest.mark.asyncio
async def test_data_ingestion_accepts_form_encoded_kommo(client: AsyncClient):
    form = {
        "leads[status][0][id]": "9100",
        "leads[status][0][name]": "Lead formulario",
        "leads[status][0][status_id]": "142",
        "leads[status][0][custom_fields][0][name]": "DNI",
        "leads[status][0][custom_fields][0][values][0][value]": "70123458",
        "leads[status][0][custom_fields][1][name]": "Teléfono",
        "leads[status][0][custom_fields][1][values][0][value]": "51956781234",
        "account[subdomain]": "logiflow",
    }
    resp = await client.post(f"/api/data-ingestion?apiKey={API_KEY}", data=form)
    assert resp.status_code == 200
    assert resp.json()["id"] == "70123458"

    doc = (await client.get("/api/leads/clients/70123458")).json()
    assert doc["nombres"] == "Lead formulario"
    assert doc["celular"] == "956781234"
    assert doc["etapa_kommo"] == "142"


@pytest.mark.asyncio
async def test_data_ingestion_accepts_shopify_order(client: AsyncClient):
    resp = await client.post(f"/api/data-ingestion?apiKey={API_KEY}&store=cumbre", json=shopify_order(id=42))
    assert resp.status_code == 200
    assert resp.json()["collection"] == "shopify_leads"

    lead = (await client.get("/api/leads/shopify_leads/42")).json()
    assert lead["tienda_origen"] == "Cumbre"


@pytest.mark.asyncio
async def test_unrecognized_payload_is_422(client: AsyncClient):
    resp = await client.post(f"/api/data-ingestion?apiKey={API_KEY}", json={"hello": "world"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_empty_body_is_400(client: AsyncClient):
    resp = await client.post(
        f"/api/data-ingestion?apiKey={API_KEY}",
        content=b"",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_irrelevant_kommo_event_is_ignored(client: AsyncClient):
    resp = await client.post(
        f"/api/kommo-webhook?apiKey={API_KEY}",
        json={"leads": {"delete": [{"id": 9001}]}},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "ignored"
    assert (await client.get("/api/clients")).json() == []


@pytest.mark.asyncio
async def test_kommo_order_webhook_creates_pending_order(client: AsyncClient):
    resp = await client.post(f"/api/webhooks/kommo?apiKey={API_KEY}", json=kommo_lead_event(dni=None))
    assert resp.status_code == 201
    order_id = resp.json()["orderId"]
    assert order_id.startswith("PED-") and order_id.endswith("-00001")

    order = (await client.get(f"/api/orders/{order_id}")).json()
    assert order["estado_actual"] == "PENDIENTE"
    assert order["id_interno"] == "INT-00001"
    assert order["cliente"]["id_cliente"] == "KOMMO-3003"
    assert order["pago"]["monto_total"] == 150
    assert order["kommo_lead_id"] == "9001"
    assert order["source"] == "kommo"

    resp = await client.post(f"/api/webhooks/kommo?apiKey={API_KEY}", json=kommo_lead_event())
    second = (await client.get(f"/api/orders/{resp.json()['orderId']}")).json()
    assert second["id_interno"] == "INT-00002"
    assert second["cliente"]["id_cliente"] == "45871236"
