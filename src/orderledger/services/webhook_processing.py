"""
Durable webhook processing: verify, correlate, persist the ledger row, then mutate.

The ledger row is always written before the order is touched. A duplicate
delivery of an event whose row is orphaned is a repair opportunity: if the order
now correlates, the transition and the ledger flip are committed together.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderledger.core.config import settings
from orderledger.core.errors import LedgerWriteFailure, NotConfigured, WebhookError
from orderledger.core.logging import error_context, get_payment_logger
from orderledger.core.metrics import metrics
from orderledger.core.request_context import get_request_id
from orderledger.core.stripe_events import RouteKind, classify
from orderledger.integrations.stripe.webhook import VerifiedEvent, construct_event
from orderledger.models.payment_event import PaymentEvent
from orderledger.repositories import ledger as ledger_repo
from orderledger.repositories.ledger import LedgerDuplicate, LedgerEntry, LedgerFailure
from orderledger.services import acknowledgment
from orderledger.services.acknowledgment import Acknowledgment, OrphanDecision
from orderledger.services.correlation import Correlation, resolve
from orderledger.services.order_transitions import apply_event
from orderledger.services.snapshots import build_snapshot
from orderledger.services.webhook_outcome import OutcomeKind, ProcessingOutcome

log = get_payment_logger(__name__)


def _transition_count(db: Session, kind: RouteKind, event: VerifiedEvent, order_id: str, now: datetime) -> int:
    try:
        result = apply_event(db, kind, event, order_id, now=now)
    except SQLAlchemyError as e:
        raise LedgerWriteFailure("order transition failed") from e
    return result.count if result is not None else 0


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        raise LedgerWriteFailure("commit failed") from e


def _handle_duplicate(
    db: Session,
    event: VerifiedEvent,
    kind: Optional[RouteKind],
    correlation: Correlation,
    existing: PaymentEvent,
    *,
    now: datetime,
) -> ProcessingOutcome:
    if not existing.orphaned:
        # already processed; re-assert the guarded transition against the stored order
        transitions = 0
        if kind is not None and existing.order_id:
            transitions = _transition_count(db, kind, event, existing.order_id, now)
            _commit(db)
        log.info(
            "stripe webhook duplicate ignored",
            stripe_event_id=event.id,
            event_type=event.type,
            order_id=existing.order_id,
            count=transitions,
        )
        return ProcessingOutcome(OutcomeKind.DUPLICATE, order_id=existing.order_id, transitions=transitions)

    if kind is None or not correlation.resolved or correlation.order_id is None:
        return ProcessingOutcome(
            OutcomeKind.ORPHANED,
            orphan_reason=correlation.orphan_reason,
            order_id=correlation.order_id,
        )

    # repair: order transition and ledger flip in one transaction
    transitions = _transition_count(db, kind, event, correlation.order_id, now)
    try:
        repaired = ledger_repo.mark_repaired(db, event.id, correlation.order_id)
    except SQLAlchemyError as e:
        raise LedgerWriteFailure("ledger repair failed") from e
    _commit(db)

    log.info(
        "orphaned ledger entry repaired",
        stripe_event_id=event.id,
        event_type=event.type,
        order_id=correlation.order_id,
        outcome="repaired" if repaired else "already_repaired",
        count=transitions,
    )
    return ProcessingOutcome(OutcomeKind.REPAIRED, order_id=correlation.order_id, transitions=transitions)


def process_event(
    db: Session,
    event: VerifiedEvent,
    *,
    pricing_mode: str,
    now: datetime,
) -> ProcessingOutcome:
    kind = classify(event.type)
    correlation = resolve(db, event, kind, pricing_mode=pricing_mode)

    entry = LedgerEntry(
        event_type=event.type,
        order_id=correlation.order_id,
        orphan_reason=correlation.orphan_reason,
        payload=build_snapshot(event, kind),
    )
    result = ledger_repo.create_if_absent(db, event.id, entry)

    if isinstance(result, LedgerFailure):
        log.error(
            "webhook persist failed",
            stripe_event_id=event.id,
            event_type=event.type,
            **error_context(result.error, settings, error_code="persist_failed"),
        )
        return ProcessingOutcome(OutcomeKind.LEDGER_FAILURE)

    if isinstance(result, LedgerDuplicate):
        return _handle_duplicate(db, event, kind, correlation, result.existing, now=now)

    if kind is None or not correlation.resolved or correlation.order_id is None:
        log.warning(
            "stripe webhook stored as orphaned",
            stripe_event_id=event.id,
            event_type=event.type,
            order_id=correlation.order_id,
            orphan_reason=correlation.orphan_reason.value if correlation.orphan_reason else None,
        )
        return ProcessingOutcome(
            OutcomeKind.ORPHANED,
            orphan_reason=correlation.orphan_reason,
            order_id=correlation.order_id,
        )

    transitions = _transition_count(db, kind, event, correlation.order_id, now)
    _commit(db)
    return ProcessingOutcome(OutcomeKind.PROCESSED, order_id=correlation.order_id, transitions=transitions)


def _report_orphan(event: VerifiedEvent, outcome: ProcessingOutcome, ack: Acknowledgment, now: datetime) -> None:
    if ack.orphan_decision is None or outcome.orphan_reason is None:
        return
    reason = outcome.orphan_reason.value
    metrics.record_orphan(reason, ack.orphan_decision.value)

    age_hours = round((now - event.created).total_seconds() / 3600, 2) if event.created else None
    if ack.orphan_decision is OrphanDecision.ACK_STALE:
        log.warning(
            "orphaned event past retry window, acknowledged for manual reconciliation",
            stripe_event_id=event.id,
            event_type=event.type,
            orphan_reason=reason,
            decision=ack.orphan_decision.value,
            age_hours=age_hours,
            metric="orphan_given_up",
        )
    else:
        log.info(
            "orphaned event acknowledgment",
            stripe_event_id=event.id,
            event_type=event.type,
            orphan_reason=reason,
            decision=ack.orphan_decision.value,
            age_hours=age_hours,
        )


def handle_delivery(
    db: Session,
    payload: Optional[bytes],
    signature: Optional[str],
    *,
    now: Optional[datetime] = None,
    request_id: Optional[str] = None,
) -> Acknowledgment:
    """Every branch ends in an Acknowledgment; nothing propagates to the caller."""
    request_id = request_id or get_request_id()

    try:
        event = construct_event(
            payload,
            signature,
            settings.webhook_secret(),
            tolerance=settings.webhook_signature_tolerance_sec,
        )
    except NotConfigured as e:
        log.error("STRIPE_WEBHOOK_SECRET not set")
        ack = acknowledgment.for_rejection(e, request_id)
        metrics.record_delivery("not_configured", ack.status_code)
        return ack
    except WebhookError as e:
        log.warning(
            "stripe webhook rejected",
            reason=e.reason,
            **error_context(e, settings, error_code=type(e).__name__),
        )
        ack = acknowledgment.for_rejection(e, request_id)
        metrics.record_delivery("rejected", ack.status_code)
        return ack

    now = now or datetime.now(timezone.utc)
    try:
        outcome = process_event(db, event, pricing_mode=settings.pricing_mode, now=now)
    except LedgerWriteFailure as e:
        db.rollback()
        log.error(
            "order mutation failed",
            stripe_event_id=event.id,
            event_type=event.type,
            **error_context(e.__cause__ or e, settings, error_code="mutate_failed"),
        )
        ack = acknowledgment.nack(request_id)
        metrics.record_delivery(OutcomeKind.LEDGER_FAILURE.value, ack.status_code)
        return ack
    except Exception as e:
        db.rollback()
        log.error(
            "webhook processing failed",
            exc_info=not settings.is_production or settings.log_stack_in_prod,
            stripe_event_id=event.id,
            event_type=event.type,
            **error_context(e, settings, error_code="processing_failed"),
        )
        ack = acknowledgment.nack(request_id)
        metrics.record_delivery(OutcomeKind.LEDGER_FAILURE.value, ack.status_code)
        return ack

    ack = acknowledgment.for_outcome(
        outcome,
        created=event.created,
        now=now,
        window=timedelta(hours=settings.orphan_retry_window_hours),
        request_id=request_id,
    )
    _report_orphan(event, outcome, ack, now)
    metrics.record_delivery(outcome.kind.value, ack.status_code)
    log.info(
        "stripe webhook outcome",
        stripe_event_id=event.id,
        event_type=event.type,
        order_id=outcome.order_id,
        outcome=outcome.kind.value,
        status_code=ack.status_code,
    )
    return ack
