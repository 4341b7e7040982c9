import pytest

from orderledger.core.stripe_events import (
    RECOVERABLE_ORPHAN_REASONS,
    OrphanReason,
    RouteKind,
    classify,
)


@pytest.mark.parametrize(
    "event_type,kind",
    [
        ("checkout.session.completed", RouteKind.COMPLETION),
        ("checkout.session.async_payment_succeeded", RouteKind.COMPLETION),
        ("checkout.session.async_payment_failed", RouteKind.FAILURE),
        ("checkout.session.expired", RouteKind.FAILURE),
        ("charge.refunded", RouteKind.REFUND),
        ("payment_intent.refunded", RouteKind.REFUND),
    ],
)
def test_known_event_types(event_type, kind):
    assert classify(event_type) is kind


@pytest.mark.parametrize("event_type", ["customer.created", "invoice.paid", "", "checkout.session"])
def test_unknown_event_types(event_type):
    assert classify(event_type) is None


def test_recoverable_reasons():
    assert OrphanReason.ORDER_NOT_FOUND in RECOVERABLE_ORPHAN_REASONS
    assert OrphanReason.SANITY_CHECK_FAILED in RECOVERABLE_ORPHAN_REASONS
    assert OrphanReason.PAYMENT_NOT_PAID in RECOVERABLE_ORPHAN_REASONS
    assert OrphanReason.NO_ORDER_ID not in RECOVERABLE_ORPHAN_REASONS
    assert OrphanReason.UNKNOWN_EVENT_TYPE not in RECOVERABLE_ORPHAN_REASONS
