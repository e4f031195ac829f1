"""PayPal REST client — OAuth token and webhook signature verification."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from app.core.config import settings
from app.services.paypal.exceptions import (
    PayPalAPIError,
    PayPalConfigurationError,
    WebhookVerificationError,
)

logger = logging.getLogger(__name__)

PAYPAL_API_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

# Request header → verify-webhook-signature body field
TRANSMISSION_HEADERS = {
    "paypal-auth-algo": "auth_algo",
    "paypal-cert-url": "cert_url",
    "paypal-transmission-id": "transmission_id",
    "paypal-transmission-sig": "transmission_sig",
    "paypal-transmission-time": "transmission_time",
}


def api_base_url() -> str:
    try:
        return PAYPAL_API_BASE_URLS[settings.PAYPAL_ENVIRONMENT]
    except KeyError:
        raise PayPalConfigurationError(
            f"PAYPAL_ENVIRONMENT must be 'sandbox' or 'live', got {settings.PAYPAL_ENVIRONMENT!r}"
        ) from None


async def _get_access_token(client: httpx.AsyncClient) -> str:
    response = await client.post(
        "/v1/oauth2/token",
        data={"grant_type": "client_credentials"},
        auth=(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET),
        headers={"Accept": "application/json"},
    )
    response.raise_for_status()
    return response.json()["access_token"]


async def verify_webhook_signature(headers: Mapping[str, str], event: dict[str, Any]) -> bool:
    """Ask PayPal whether a webhook delivery is authentic.

    Args:
        headers: Incoming request headers (case-insensitive mapping).
        event: The webhook body exactly as received, decoded from JSON.

    Returns:
        True if PayPal reports ``verification_status == "SUCCESS"``.

    Raises:
        PayPalConfigurationError: Credentials or webhook id missing.
        WebhookVerificationError: Transmission headers missing.
        PayPalAPIError: PayPal could not be reached or returned an error.
    """
    if not settings.PAYPAL_CLIENT_ID or not settings.PAYPAL_CLIENT_SECRET or not settings.PAYPAL_WEBHOOK_ID:
        raise PayPalConfigurationError(
            "PayPal webhook verification requires PAYPAL_CLIENT_ID, PAYPAL_CLIENT_SECRET and PAYPAL_WEBHOOK_ID"
        )

    body: dict[str, Any] = {}
    missing = []
    for header, field in TRANSMISSION_HEADERS.items():
        value = headers.get(header)
        if not value:
            missing.append(header)
        body[field] = value
    if missing:
        raise WebhookVerificationError(f"Missing PayPal transmission headers: {', '.join(missing)}")

    body["webhook_id"] = settings.PAYPAL_WEBHOOK_ID
    body["webhook_event"] = event

    try:
        async with httpx.AsyncClient(base_url=api_base_url(), timeout=15.0) as client:
            token = await _get_access_token(client)
            response = await client.post(
                "/v1/notifications/verify-webhook-signature",
                json=body,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "PayPal API returned %d: %s",
            exc.response.status_code,
            exc.response.text,
        )
        raise PayPalAPIError(
            f"PayPal API error: {exc.response.status_code}", status_code=exc.response.status_code
        ) from exc
    except httpx.RequestError as exc:
        logger.error("PayPal API request failed: %s", exc)
        raise PayPalAPIError(f"PayPal API request failed: {exc}") from exc

    try:
        status = response.json()["verification_status"]
    except (KeyError, ValueError) as exc:
        raise PayPalAPIError(f"Unexpected verification response: {exc}") from exc

    if status != "SUCCESS":
        logger.warning("PayPal webhook signature verification returned %s", status)
    return status == "SUCCESS"
