"""Inbound webhook validation helpers."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging

from fastapi import HTTPException, Request

from ..config import ShopifyStoreConfig, settings

log = logging.getLogger(__name__)

SHOPIFY_HMAC_HEADER = "x-shopify-hmac-sha256"


def shopify_signature(body: bytes, secret: str) -> str:
    """base64(HMAC-SHA256(secret, body)), as Shopify computes it."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_shopify_hmac(body: bytes, signature: str | None, secret: str | None) -> bool:
    """Constant-time check of a Shopify webhook signature.

    Fails closed: no secret or no signature means the request is rejected.
    A ``sha256=`` prefix on the header value is tolerated.
    """
    if not secret or not signature:
        return False
    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    expected = shopify_signature(body, secret)
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_store_webhook(store_id: str, body: bytes, signature: str | None) -> ShopifyStoreConfig:
    """Resolve the store and check ``signature`` against its secret.

    Unknown or inactive store -> 404; missing secret or bad signature -> 401.
    """
    store = settings.shopify_store(store_id)
    if store is None:
        raise HTTPException(status_code=404, detail=f"Unknown store '{store_id}'")

    if not store.webhook_secret:
        log.error("Shopify webhook secret not configured for store %s", store_id)
        raise HTTPException(status_code=401, detail="Webhook secret not configured")

    if not verify_shopify_hmac(body, signature, store.webhook_secret):
        log.warning("Invalid Shopify signature for store %s", store_id)
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    log.info("Shopify signature verified for store %s", store_id)
    return store


def verify_shopify_request(request: Request, raw_body: bytes, store_id: str) -> ShopifyStoreConfig:
    return verify_store_webhook(store_id, raw_body, request.headers.get(SHOPIFY_HMAC_HEADER))


def verify_api_key(request: Request) -> None:
    """Shared-key check for the Kommo / Make ingestion endpoints (``?apiKey=``)."""
    expected = settings.ingestion_api_key
    if not expected:
        log.error("LOGIFLOW_INGESTION_API_KEY is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    provided = (
        request.query_params.get("apiKey", "").strip()
        or request.headers.get("x-api-key", "").strip()
    )
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        log.warning("Unauthorized ingestion attempt from %s", request.client.host if request.client else "?")
        raise HTTPException(status_code=401, detail="Unauthorized")
