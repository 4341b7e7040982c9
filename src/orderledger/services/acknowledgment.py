"""
Response policy for webhook deliveries.

REJECT (400): nothing was persisted and retrying the same bytes cannot succeed.
NACK (500): the provider should retry; the ledger write failed, or a recoverable
orphan is still inside the freshness window.
ACK (200): processed, duplicate, insoluble orphan, or an orphan too old to keep
retrying (it is counted and left to manual reconciliation).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from orderledger.core.errors import WebhookError
from orderledger.core.stripe_events import RECOVERABLE_ORPHAN_REASONS, OrphanReason
from orderledger.services.webhook_outcome import OutcomeKind, ProcessingOutcome

INTERNAL_ERROR = "Internal server error"


class Decision(str, Enum):
    ACK = "ack"
    NACK = "nack"
    REJECT = "reject"


class OrphanDecision(str, Enum):
    NACK_RETRY = "nack_retry"
    ACK_INSOLUBLE = "ack_insoluble"
    ACK_STALE = "ack_stale"


@dataclass(frozen=True)
class Acknowledgment:
    decision: Decision
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    orphan_decision: Optional[OrphanDecision] = None


def _error_body(reason: str, request_id: Optional[str]) -> dict[str, Any]:
    body: dict[str, Any] = {"error": reason}
    if request_id:
        body["request_id"] = request_id
    return body


def ack() -> Acknowledgment:
    return Acknowledgment(decision=Decision.ACK, status_code=200, body={"received": True})


def nack(request_id: Optional[str], reason: str = INTERNAL_ERROR) -> Acknowledgment:
    return Acknowledgment(decision=Decision.NACK, status_code=500, body=_error_body(reason, request_id))


def for_rejection(error: WebhookError, request_id: Optional[str]) -> Acknowledgment:
    decision = Decision.REJECT if error.status_code < 500 else Decision.NACK
    return Acknowledgment(
        decision=decision,
        status_code=error.status_code,
        body=_error_body(error.reason, request_id),
    )


def is_within_window(created: Optional[datetime], now: datetime, window: timedelta) -> bool:
    # an event without a creation time is treated as fresh
    if created is None:
        return True
    return now - created <= window


def orphan_decision(
    reason: OrphanReason,
    *,
    created: Optional[datetime],
    now: datetime,
    window: timedelta,
) -> OrphanDecision:
    if reason not in RECOVERABLE_ORPHAN_REASONS:
        return OrphanDecision.ACK_INSOLUBLE
    if is_within_window(created, now, window):
        return OrphanDecision.NACK_RETRY
    return OrphanDecision.ACK_STALE


def for_outcome(
    outcome: ProcessingOutcome,
    *,
    created: Optional[datetime],
    now: datetime,
    window: timedelta,
    request_id: Optional[str],
) -> Acknowledgment:
    if outcome.kind is OutcomeKind.LEDGER_FAILURE:
        return nack(request_id)

    if outcome.kind is OutcomeKind.ORPHANED and outcome.orphan_reason is not None:
        decision = orphan_decision(outcome.orphan_reason, created=created, now=now, window=window)
        if decision is OrphanDecision.NACK_RETRY:
            return Acknowledgment(
                decision=Decision.NACK,
                status_code=500,
                body=_error_body("Order not reconciled yet", request_id),
                orphan_decision=decision,
            )
        return Acknowledgment(
            decision=Decision.ACK,
            status_code=200,
            body={"received": True},
            orphan_decision=decision,
        )

    return ack()
