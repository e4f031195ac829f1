"""PayPal billing exceptions."""


class PayPalError(Exception):
    """Base exception for PayPal billing operations."""


class PayPalConfigurationError(PayPalError):
    """Raised when PayPal credentials or the webhook id are not configured."""


class PayPalAPIError(PayPalError):
    """Raised when a PayPal REST call fails or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class WebhookPayloadError(PayPalError):
    """Raised when a webhook body cannot be processed safely (bad JSON, missing ids)."""


class WebhookVerificationError(PayPalError):
    """Raised when a webhook signature does not verify."""


class SubscriptionNotReadyError(PayPalError):
    """Raised when an event refers to a subscription we have not recorded yet.

    Delivery is unordered; answering with a retriable error lets PayPal
    redeliver once the subscription's creation event has been processed.
    """

    def __init__(self, paypal_subscription_id: str) -> None:
        self.paypal_subscription_id = paypal_subscription_id
        super().__init__(f"Subscription {paypal_subscription_id} is not known yet")
