"""PayPal billing — webhook verification and event processing."""

from app.services.paypal.client import api_base_url, verify_webhook_signature
from app.services.paypal.exceptions import (
    PayPalAPIError,
    PayPalConfigurationError,
    PayPalError,
    SubscriptionNotReadyError,
    WebhookPayloadError,
    WebhookVerificationError,
)
from app.services.paypal.models import PayPalEventType, WebhookEvent, WebhookOutcome
from app.services.paypal.webhook import allocation_key, billing_cycle, process_event

__all__ = [
    "PayPalAPIError",
    "PayPalConfigurationError",
    "PayPalError",
    "PayPalEventType",
    "SubscriptionNotReadyError",
    "WebhookEvent",
    "WebhookOutcome",
    "WebhookPayloadError",
    "WebhookVerificationError",
    "allocation_key",
    "api_base_url",
    "billing_cycle",
    "process_event",
    "verify_webhook_signature",
]
