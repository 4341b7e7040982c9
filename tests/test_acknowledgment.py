from datetime import datetime, timedelta, timezone

import pytest

from orderledger.core.errors import InvalidSignature, MissingSignature, NotConfigured
from orderledger.core.stripe_events import OrphanReason
from orderledger.services import acknowledgment
from orderledger.services.acknowledgment import Decision, OrphanDecision
from orderledger.services.webhook_outcome import OutcomeKind, ProcessingOutcome

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=24)


def _for(outcome, created=NOW):
    return acknowledgment.for_outcome(outcome, created=created, now=NOW, window=WINDOW, request_id="req-1")


class TestRejection:
    @pytest.mark.parametrize("error", [MissingSignature(), InvalidSignature("bad")])
    def test_client_errors_are_rejected(self, error):
        ack = acknowledgment.for_rejection(error, "req-1")
        assert ack.decision is Decision.REJECT
        assert ack.status_code == 400
        assert ack.body == {"error": error.reason, "request_id": "req-1"}

    def test_not_configured_is_500(self):
        ack = acknowledgment.for_rejection(NotConfigured(), None)
        assert ack.status_code == 500
        assert ack.body == {"error": "Webhook not configured"}


class TestOutcome:
    @pytest.mark.parametrize("kind", [OutcomeKind.PROCESSED, OutcomeKind.DUPLICATE, OutcomeKind.REPAIRED])
    def test_success_kinds_ack(self, kind):
        ack = _for(ProcessingOutcome(kind))
        assert ack.status_code == 200
        assert ack.body == {"received": True}

    def test_ledger_failure_nacks(self):
        ack = _for(ProcessingOutcome(OutcomeKind.LEDGER_FAILURE))
        assert ack.decision is Decision.NACK
        assert ack.status_code == 500
        assert ack.body["request_id"] == "req-1"

    @pytest.mark.parametrize("reason", [OrphanReason.NO_ORDER_ID, OrphanReason.UNKNOWN_EVENT_TYPE])
    def test_insoluble_orphans_ack(self, reason):
        ack = _for(ProcessingOutcome(OutcomeKind.ORPHANED, orphan_reason=reason))
        assert ack.status_code == 200
        assert ack.orphan_decision is OrphanDecision.ACK_INSOLUBLE

    @pytest.mark.parametrize(
        "reason",
        [OrphanReason.ORDER_NOT_FOUND, OrphanReason.SANITY_CHECK_FAILED, OrphanReason.PAYMENT_NOT_PAID],
    )
    def test_fresh_recoverable_orphans_nack(self, reason):
        ack = _for(ProcessingOutcome(OutcomeKind.ORPHANED, orphan_reason=reason), created=NOW - timedelta(hours=1))
        assert ack.status_code == 500
        assert ack.orphan_decision is OrphanDecision.NACK_RETRY

    def test_stale_recoverable_orphan_acks(self):
        outcome = ProcessingOutcome(OutcomeKind.ORPHANED, orphan_reason=OrphanReason.ORDER_NOT_FOUND)
        ack = _for(outcome, created=NOW - timedelta(hours=25))
        assert ack.status_code == 200
        assert ack.orphan_decision is OrphanDecision.ACK_STALE

    def test_window_boundary_is_inclusive(self):
        assert acknowledgment.is_within_window(NOW - WINDOW, NOW, WINDOW) is True

    def test_missing_created_counts_as_fresh(self):
        outcome = ProcessingOutcome(OutcomeKind.ORPHANED, orphan_reason=OrphanReason.ORDER_NOT_FOUND)
        assert _for(outcome, created=None).status_code == 500
