from __future__ import annotations

from enum import Enum
from typing import Final


class RouteKind(str, Enum):
    COMPLETION = "completion"
    FAILURE = "failure"
    REFUND = "refund"


class OrphanReason(str, Enum):
    NO_ORDER_ID = "no_order_id"
    ORDER_NOT_FOUND = "order_not_found"
    PAYMENT_NOT_PAID = "payment_not_paid"
    SANITY_CHECK_FAILED = "sanity_check_failed"
    UNKNOWN_EVENT_TYPE = "unknown_event_type"


# The only event types that can move an order. Everything else is stored as an
# orphan and acknowledged so the provider stops redelivering it.
EVENT_ROUTES: Final[dict[str, RouteKind]] = {
    "checkout.session.completed": RouteKind.COMPLETION,
    "checkout.session.async_payment_succeeded": RouteKind.COMPLETION,
    "checkout.session.async_payment_failed": RouteKind.FAILURE,
    "checkout.session.expired": RouteKind.FAILURE,
    "charge.refunded": RouteKind.REFUND,
    "payment_intent.refunded": RouteKind.REFUND,
}

# Retrying may help: the order can still appear, or the payment can still complete.
RECOVERABLE_ORPHAN_REASONS: Final[frozenset[OrphanReason]] = frozenset(
    {
        OrphanReason.ORDER_NOT_FOUND,
        OrphanReason.SANITY_CHECK_FAILED,
        OrphanReason.PAYMENT_NOT_PAID,
    }
)


def classify(event_type: str | None) -> RouteKind | None:
    """Route kind for a supported type, None for anything this service ignores."""
    if not event_type:
        return None
    return EVENT_ROUTES.get(event_type)
