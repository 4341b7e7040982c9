"""
Tie a verified event to an internal order.

Checkout session events carry the order id (metadata.orderId, falling back to
client_reference_id). Refund events never do, so they are matched on the stored
payment intent id. A found order still has to pass the sanity check before any
mutation is allowed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional

from sqlalchemy.orm import Session

from orderledger.core.logging import get_payment_logger
from orderledger.core.stripe_events import OrphanReason, RouteKind
from orderledger.integrations.stripe.client import payment_intent_id_of
from orderledger.integrations.stripe.webhook import VerifiedEvent
from orderledger.models.order import Order
from orderledger.repositories import orders as order_repo
from orderledger.services.order_transitions import refund_amounts

PricingMode = Literal["strict", "flex"]

log = get_payment_logger(__name__)


@dataclass(frozen=True)
class Correlation:
    order: Optional[Order]
    orphan_reason: Optional[OrphanReason]

    @property
    def order_id(self) -> Optional[str]:
        return self.order.id if self.order is not None else None

    @property
    def resolved(self) -> bool:
        return self.order is not None and self.orphan_reason is None


def orphan(reason: OrphanReason, order: Optional[Order] = None) -> Correlation:
    return Correlation(order=order, orphan_reason=reason)


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def order_reference(obj: dict[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    return _text(metadata.get("orderId")) or _text(obj.get("client_reference_id"))


def _same_currency(a: Any, b: Any) -> bool:
    return isinstance(a, str) and isinstance(b, str) and bool(a) and a.lower() == b.lower()


def session_sanity_check(session: dict[str, Any], order: Order, pricing_mode: PricingMode) -> bool:
    """
    strict: total == order amount.
    flex:   total >= order amount (taxes, shipping) and payment_status == "paid".
    Both: same currency, one-time payment mode, reference == order id.
    """
    if session.get("mode") != "payment":
        return False
    if order_reference(session) != order.id:
        return False
    if not _same_currency(session.get("currency"), order.currency):
        return False

    total = session.get("amount_total")
    if isinstance(total, bool) or not isinstance(total, int):
        return False

    if pricing_mode == "flex":
        return total >= order.amount_cents and session.get("payment_status") == "paid"
    return total == order.amount_cents


def _resolve_completion(db: Session, event: VerifiedEvent, pricing_mode: PricingMode) -> Correlation:
    session = event.data_object
    ref = order_reference(session)
    if ref is None:
        return orphan(OrphanReason.NO_ORDER_ID)

    order = order_repo.find_by_id(db, ref)
    if order is None:
        return orphan(OrphanReason.ORDER_NOT_FOUND)

    payment_status = session.get("payment_status") or ""
    if payment_status != "paid":
        log.warning(
            "checkout session not paid, order not updated",
            stripe_event_id=event.id,
            stripe_session_id=session.get("id"),
            order_id=order.id,
            payment_status=payment_status,
        )
        return orphan(OrphanReason.PAYMENT_NOT_PAID, order)

    if not session_sanity_check(session, order, pricing_mode):
        log.warning(
            "checkout session sanity check failed, order not marked paid",
            stripe_event_id=event.id,
            stripe_session_id=session.get("id"),
            order_id=order.id,
            pricing_mode=pricing_mode,
            session_mode=session.get("mode"),
            session_amount=session.get("amount_total"),
            session_currency=session.get("currency"),
            order_amount_cents=order.amount_cents,
            order_currency=order.currency,
        )
        return orphan(OrphanReason.SANITY_CHECK_FAILED, order)

    return Correlation(order=order, orphan_reason=None)


def _resolve_failure(db: Session, event: VerifiedEvent) -> Correlation:
    ref = order_reference(event.data_object)
    if ref is None:
        return orphan(OrphanReason.NO_ORDER_ID)
    order = order_repo.find_by_id(db, ref)
    if order is None:
        return orphan(OrphanReason.ORDER_NOT_FOUND)
    return Correlation(order=order, orphan_reason=None)


def refund_payment_intent_id(event: VerifiedEvent) -> Optional[str]:
    obj = event.data_object
    if event.type == "payment_intent.refunded":
        return _text(obj.get("id"))
    return payment_intent_id_of(obj.get("payment_intent"))


def _resolve_refund(db: Session, event: VerifiedEvent) -> Correlation:
    obj = event.data_object
    payment_intent_id = refund_payment_intent_id(event)

    order = order_repo.find_by_payment_reference(db, payment_intent_id) if payment_intent_id else None
    if order is None and event.type == "payment_intent.refunded":
        ref = order_reference(obj)
        if ref is not None:
            order = order_repo.find_by_id(db, ref)

    if order is None:
        if payment_intent_id is None and order_reference(obj) is None:
            return orphan(OrphanReason.NO_ORDER_ID)
        log.warning(
            "refund order not found by payment intent",
            stripe_event_id=event.id,
            event_type=event.type,
            charge_id=obj.get("id") if event.type == "charge.refunded" else None,
            stripe_payment_intent_id=payment_intent_id,
        )
        return orphan(OrphanReason.ORDER_NOT_FOUND)

    if not _same_currency(obj.get("currency"), order.currency):
        log.warning(
            "refund currency does not match order",
            stripe_event_id=event.id,
            order_id=order.id,
            order_currency=order.currency,
        )
        return orphan(OrphanReason.SANITY_CHECK_FAILED, order)

    if refund_amounts(event) is None:
        log.warning(
            "refund amounts are not integers, order not updated",
            stripe_event_id=event.id,
            order_id=order.id,
            event_type=event.type,
        )
        return orphan(OrphanReason.SANITY_CHECK_FAILED, order)

    return Correlation(order=order, orphan_reason=None)


def resolve(
    db: Session,
    event: VerifiedEvent,
    kind: Optional[RouteKind],
    *,
    pricing_mode: PricingMode,
) -> Correlation:
    if kind is None:
        return orphan(OrphanReason.UNKNOWN_EVENT_TYPE)
    if kind is RouteKind.COMPLETION:
        return _resolve_completion(db, event, pricing_mode)
    if kind is RouteKind.FAILURE:
        return _resolve_failure(db, event)
    return _resolve_refund(db, event)
