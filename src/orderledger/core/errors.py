from __future__ import annotations


class WebhookError(Exception):
    """Failure before anything was persisted. Mapped straight to a response."""

    status_code: int = 400
    reason: str = "Bad request"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.reason)
        self.detail = detail


class MissingPayload(WebhookError):
    status_code = 400
    reason = "Missing raw body"


class MissingSignature(WebhookError):
    status_code = 400
    reason = "Missing stripe-signature header"


class InvalidSignature(WebhookError):
    status_code = 400
    reason = "Invalid signature"


class NotConfigured(WebhookError):
    status_code = 500
    reason = "Webhook not configured"


class LedgerWriteFailure(Exception):
    """Infrastructure failure while writing the ledger or mutating an order. Retryable."""


class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
