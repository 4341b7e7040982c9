from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from orderledger.core.logging import get_payment_logger
from orderledger.core.metrics import metrics
from orderledger.core.order_status import (
    LEGAL_SOURCE_STATUSES,
    ORDER_STATUS_FAILED,
    ORDER_STATUS_PAID,
    ORDER_STATUS_REFUNDED,
)
from orderledger.core.stripe_events import RouteKind
from orderledger.integrations.stripe.client import payment_intent_id_of
from orderledger.integrations.stripe.webhook import VerifiedEvent
from orderledger.repositories import orders as order_repo
from orderledger.repositories.orders import TransitionFields

log = get_payment_logger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    transition: str
    count: int

    @property
    def applied(self) -> bool:
        return self.count > 0


def _transition(
    db: Session,
    order_id: str,
    new_status: str,
    fields: TransitionFields = TransitionFields(),
) -> TransitionResult:
    count = order_repo.conditional_update_status(
        db,
        order_id,
        expected_status_in=LEGAL_SOURCE_STATUSES[new_status],
        new_status=new_status,
        fields=fields,
    )
    return TransitionResult(transition=f"to_{new_status}", count=count)


def mark_paid(
    db: Session,
    order_id: str,
    *,
    session_id: Optional[str],
    payment_intent_id: Optional[str],
    now: datetime,
) -> TransitionResult:
    return _transition(
        db,
        order_id,
        ORDER_STATUS_PAID,
        TransitionFields(
            stripe_session_id=session_id,
            stripe_payment_intent_id=payment_intent_id,
            paid_at=now,
        ),
    )


def mark_failed(db: Session, order_id: str) -> TransitionResult:
    return _transition(db, order_id, ORDER_STATUS_FAILED)


def mark_refunded(db: Session, order_id: str) -> TransitionResult:
    return _transition(db, order_id, ORDER_STATUS_REFUNDED)


def _amount(value: Any) -> Optional[int]:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def refund_amounts(event: VerifiedEvent) -> Optional[tuple[int, int]]:
    """
    (amount the refund is measured against, amount refunded so far).
    None when either amount is present but not an integer.
    """
    obj: dict[str, Any] = event.data_object
    base_key = "amount_received" if event.type == "payment_intent.refunded" else "amount"
    base = _amount(obj.get(base_key))
    refunded = _amount(obj.get("amount_refunded"))
    if base is None or refunded is None:
        return None
    return base, refunded


def is_full_refund(event: VerifiedEvent) -> bool:
    amounts = refund_amounts(event)
    if amounts is None:
        return False
    base, refunded = amounts
    return base > 0 and refunded >= base


def apply_event(
    db: Session,
    kind: RouteKind,
    event: VerifiedEvent,
    order_id: str,
    *,
    now: datetime,
) -> Optional[TransitionResult]:
    """
    Guarded transition for a correlated event. Does not commit.
    Returns None when the event asks for no transition (partial refund).
    """
    obj = event.data_object
    if kind is RouteKind.COMPLETION:
        result = mark_paid(
            db,
            order_id,
            session_id=obj.get("id") if isinstance(obj.get("id"), str) else None,
            payment_intent_id=payment_intent_id_of(obj.get("payment_intent")),
            now=now,
        )
    elif kind is RouteKind.FAILURE:
        result = mark_failed(db, order_id)
    elif is_full_refund(event):
        result = mark_refunded(db, order_id)
    else:
        base, refunded = refund_amounts(event) or (None, None)
        log.info(
            "partial refund, order status unchanged",
            stripe_event_id=event.id,
            order_id=order_id,
            amount=base,
            amount_refunded=refunded,
        )
        return None

    metrics.record_transition(result.transition, result.applied)
    log.info(
        "order transition",
        stripe_event_id=event.id,
        event_type=event.type,
        order_id=order_id,
        outcome=result.transition if result.applied else "noop",
        count=result.count,
    )
    return result
