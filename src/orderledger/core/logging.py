"""
Structured logging for the payment paths.

Payment, checkout and webhook logs go through `PaymentLogger`, which only lets
allow-listed keys through and drops any string value containing "@" so that
customer e-mails never reach the log transport.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from orderledger.core.config import Settings
from orderledger.core.request_context import get_request_id

SAFE_PAYMENT_LOG_KEYS: frozenset[str] = frozenset(
    {
        "request_id",
        "order_id",
        "user_id",
        "stripe_session_id",
        "stripe_event_id",
        "stripe_payment_intent_id",
        "event_type",
        "outcome",
        "reason",
        "error",
        "error_code",
        "charge_id",
        "orphaned",
        "orphan_reason",
        "pricing_mode",
        "session_mode",
        "session_amount",
        "session_currency",
        "order_amount_cents",
        "order_currency",
        "payment_status",
        "amount",
        "amount_refunded",
        "amount_received",
        "count",
        "decision",
        "status_code",
        "metric",
        "age_hours",
    }
)


def safe_payment_log_context(ctx: dict[str, Any]) -> dict[str, Any]:
    """Copy of ctx with only allow-listed keys and no string value containing "@"."""
    return {
        k: v
        for k, v in ctx.items()
        if k in SAFE_PAYMENT_LOG_KEYS and not (isinstance(v, str) and "@" in v)
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry.update(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class PaymentLogger:
    """Logger wrapper that accepts keyword context and filters it through the allow-list."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, *, exc_info: bool = False, **ctx: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        request_id = get_request_id()
        if request_id and "request_id" not in ctx:
            ctx["request_id"] = request_id
        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"context": safe_payment_log_context(ctx)},
        )

    def debug(self, message: str, **ctx: Any) -> None:
        self._log(logging.DEBUG, message, **ctx)

    def info(self, message: str, **ctx: Any) -> None:
        self._log(logging.INFO, message, **ctx)

    def warning(self, message: str, **ctx: Any) -> None:
        self._log(logging.WARNING, message, **ctx)

    def error(self, message: str, *, exc_info: bool = False, **ctx: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **ctx)


def get_payment_logger(name: str) -> PaymentLogger:
    return PaymentLogger(name)


def error_context(exc: BaseException, s: Settings, *, error_code: str) -> dict[str, Any]:
    """Production logs carry a stable error code only; elsewhere the exception text too."""
    if s.is_production:
        return {"error_code": error_code}
    return {"error_code": error_code, "error": str(exc)}


def configure_logging(s: Settings) -> None:
    handler = logging.StreamHandler(sys.stdout)
    if s.log_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(s.log_level.upper())
