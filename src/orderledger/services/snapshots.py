"""
Ledger payload snapshots.

One closed schema per route kind. The order id lives in its own column, never in
the payload, and nothing customer-identifying is copied from the event.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from orderledger.core.stripe_events import RouteKind
from orderledger.integrations.stripe.webhook import VerifiedEvent
from orderledger.services.correlation import refund_payment_intent_id


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class SessionSnapshot:
    stripe_event_id: str
    type: str
    stripe_session_id: Optional[str]
    amount_total: Optional[int]
    currency: Optional[str]
    payment_status: Optional[str]


@dataclass(frozen=True)
class RefundSnapshot:
    stripe_event_id: str
    type: str
    charge_id: Optional[str]
    payment_intent_id: Optional[str]
    amount: Optional[int]
    amount_received: Optional[int]
    amount_refunded: Optional[int]


@dataclass(frozen=True)
class UnknownEventSnapshot:
    stripe_event_id: str
    type: str
    object_id: Optional[str]


def build_snapshot(event: VerifiedEvent, kind: Optional[RouteKind]) -> dict[str, Any]:
    obj = event.data_object

    if kind in (RouteKind.COMPLETION, RouteKind.FAILURE):
        snapshot: Any = SessionSnapshot(
            stripe_event_id=event.id,
            type=event.type,
            stripe_session_id=obj.get("id"),
            amount_total=obj.get("amount_total"),
            currency=obj.get("currency"),
            payment_status=obj.get("payment_status"),
        )
    elif kind is RouteKind.REFUND:
        is_charge = event.type == "charge.refunded"
        snapshot = RefundSnapshot(
            stripe_event_id=event.id,
            type=event.type,
            charge_id=obj.get("id") if is_charge else None,
            payment_intent_id=refund_payment_intent_id(event),
            amount=obj.get("amount"),
            amount_received=obj.get("amount_received"),
            amount_refunded=obj.get("amount_refunded"),
        )
    else:
        snapshot = UnknownEventSnapshot(
            stripe_event_id=event.id,
            type=event.type,
            object_id=obj.get("id"),
        )

    return _without_none(asdict(snapshot))
