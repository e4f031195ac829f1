"""Tests for the PayPal webhook signature verification client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.config import settings
from app.services.paypal import (
    PayPalAPIError,
    PayPalConfigurationError,
    WebhookVerificationError,
    api_base_url,
    verify_webhook_signature,
)

HEADERS = {
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-cert-url": "https://api.sandbox.paypal.com/v1/notifications/certs/CERT-1",
    "paypal-transmission-id": "69cd13f0-d67a-11e5-baa3-778b53f4ae55",
    "paypal-transmission-sig": "lmI95Jx3Y9nhR5SJWlHVIWpg4AgFk7n9bCHSRxbrd8A9zrhdu2rMyFrmz+Zjh3s3boXB07VXCXUZy/UFzUlnGJn0wDugt7FlSvdKeIJenLRemUxYCPVoEZzg9VFNqOa48gMkvF+XTpxBeUx/kWy6B5cp7GkT2+pOowfRK7OaynuxUoKW3JcMWw272VKjLTtTAShncla7tGF+55rxyt2KNZIIqxNMJ48RDZheGU5w1npu9dZHnPgTXB9iomeVRoD8O/jhRpnKsGrDschyNdkeh81BJJMH4Ctc6lnCCquoP/GzCzz33MMsNdid7vL/NIWaCsekQpW26FpWPi/tfj8nLA==",
    "paypal-transmission-time": "2026-03-01T12:00:01Z",
}

EVENT = {"id": "WH-1", "event_type": "BILLING.SUBSCRIPTION.ACTIVATED", "resource": {"id": "I-SUB1"}}


def _response(status_code: int, json_data: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = str(json_data)
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}",
            request=httpx.Request("POST", "https://api-m.sandbox.paypal.com"),
            response=response,
        )
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture(autouse=True)
def paypal_credentials():
    originals = (settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET, settings.PAYPAL_WEBHOOK_ID)
    settings.PAYPAL_CLIENT_ID = "client-id"
    settings.PAYPAL_CLIENT_SECRET = "client-secret"
    settings.PAYPAL_WEBHOOK_ID = "WH-ID-1"
    yield
    settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET, settings.PAYPAL_WEBHOOK_ID = originals


def _patched_client(*responses):
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(side_effect=list(responses))
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


class TestVerifyWebhookSignature:
    @pytest.mark.asyncio
    async def test_success(self):
        mock_client = _patched_client(
            _response(200, {"access_token": "A21AA", "token_type": "Bearer"}),
            _response(200, {"verification_status": "SUCCESS"}),
        )

        with patch("app.services.paypal.client.httpx.AsyncClient", return_value=mock_client):
            assert await verify_webhook_signature(HEADERS, EVENT) is True

        token_call, verify_call = mock_client.post.call_args_list
        assert token_call.args[0] == "/v1/oauth2/token"
        assert token_call.kwargs["auth"] == ("client-id", "client-secret")
        assert verify_call.args[0] == "/v1/notifications/verify-webhook-signature"
        body = verify_call.kwargs["json"]
        assert body["webhook_id"] == "WH-ID-1"
        assert body["webhook_event"] == EVENT
        assert body["transmission_id"] == HEADERS["paypal-transmission-id"]
        assert verify_call.kwargs["headers"]["Authorization"] == "Bearer A21AA"

    @pytest.mark.asyncio
    async def test_failure_status(self):
        mock_client = _patched_client(
            _response(200, {"access_token": "A21AA"}),
            _response(200, {"verification_status": "FAILURE"}),
        )

        with patch("app.services.paypal.client.httpx.AsyncClient", return_value=mock_client):
            assert await verify_webhook_signature(HEADERS, EVENT) is False

    @pytest.mark.asyncio
    async def test_missing_headers(self):
        headers = {k: v for k, v in HEADERS.items() if k != "paypal-transmission-sig"}

        with pytest.raises(WebhookVerificationError, match="paypal-transmission-sig"):
            await verify_webhook_signature(headers, EVENT)

    @pytest.mark.asyncio
    async def test_missing_configuration(self):
        settings.PAYPAL_WEBHOOK_ID = ""

        with pytest.raises(PayPalConfigurationError):
            await verify_webhook_signature(HEADERS, EVENT)

    @pytest.mark.asyncio
    async def test_http_error(self):
        mock_client = _patched_client(_response(401, {"error": "invalid_client"}))

        with patch("app.services.paypal.client.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(PayPalAPIError) as exc_info:
                await verify_webhook_signature(HEADERS, EVENT)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_network_error(self):
        mock_client = _patched_client(httpx.ConnectError("connection refused"))

        with patch("app.services.paypal.client.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(PayPalAPIError):
                await verify_webhook_signature(HEADERS, EVENT)


class TestApiBaseUrl:
    @pytest.fixture(autouse=True)
    def _restore_environment(self):
        original = settings.PAYPAL_ENVIRONMENT
        yield
        settings.PAYPAL_ENVIRONMENT = original

    def test_environments(self):
        settings.PAYPAL_ENVIRONMENT = "live"
        assert api_base_url() == "https://api-m.paypal.com"
        settings.PAYPAL_ENVIRONMENT = "sandbox"
        assert api_base_url() == "https://api-m.sandbox.paypal.com"

    def test_unknown_environment(self):
        settings.PAYPAL_ENVIRONMENT = "staging"
        with pytest.raises(PayPalConfigurationError):
            api_base_url()
