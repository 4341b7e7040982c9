from datetime import datetime, timezone

import pytest

from conftest import reload
from orderledger.core.stripe_events import RouteKind
from orderledger.integrations.stripe.webhook import VerifiedEvent
from orderledger.models.order import Order
from orderledger.services import order_transitions

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _refund_event(event_type: str, obj: dict) -> VerifiedEvent:
    return VerifiedEvent(id="evt_rf", type=event_type, created=NOW, livemode=False, data_object=obj)


class TestGuards:
    def test_mark_paid_from_pending(self, db, make_order):
        order = make_order()
        result = order_transitions.mark_paid(db, order.id, session_id="cs_1", payment_intent_id="pi_1", now=NOW)
        db.commit()

        assert result.applied is True
        row = reload(db, Order, order.id)
        assert row.status == "paid"
        assert row.stripe_payment_intent_id == "pi_1"

    @pytest.mark.parametrize("status", ["paid", "failed", "refunded"])
    def test_mark_paid_only_from_pending(self, db, make_order, status):
        order = make_order(status=status)
        result = order_transitions.mark_paid(db, order.id, session_id="cs_1", payment_intent_id="pi_1", now=NOW)
        db.commit()

        assert result.count == 0
        assert reload(db, Order, order.id).status == status

    def test_mark_paid_keeps_existing_session_id_when_none(self, db, make_order):
        order = make_order(stripe_session_id="cs_orig")
        order_transitions.mark_paid(db, order.id, session_id=None, payment_intent_id=None, now=NOW)
        db.commit()
        assert reload(db, Order, order.id).stripe_session_id == "cs_orig"

    @pytest.mark.parametrize("status,applied", [("pending", True), ("paid", False), ("refunded", False)])
    def test_mark_failed(self, db, make_order, status, applied):
        order = make_order(status=status)
        assert order_transitions.mark_failed(db, order.id).applied is applied
        db.commit()

    @pytest.mark.parametrize("status,applied", [("paid", True), ("pending", False), ("failed", False), ("refunded", False)])
    def test_mark_refunded(self, db, make_order, status, applied):
        order = make_order(status=status)
        assert order_transitions.mark_refunded(db, order.id).applied is applied
        db.commit()

    def test_unknown_order_is_zero(self, db):
        assert order_transitions.mark_failed(db, "missing").count == 0
        db.rollback()


class TestRefundAmounts:
    def test_charge_full(self):
        event = _refund_event("charge.refunded", {"amount": 1000, "amount_refunded": 1000})
        assert order_transitions.is_full_refund(event) is True

    def test_charge_partial(self):
        event = _refund_event("charge.refunded", {"amount": 1000, "amount_refunded": 999})
        assert order_transitions.is_full_refund(event) is False

    def test_payment_intent_uses_amount_received(self):
        event = _refund_event(
            "payment_intent.refunded",
            {"amount": 2000, "amount_received": 1000, "amount_refunded": 1000},
        )
        assert order_transitions.refund_amounts(event) == (1000, 1000)
        assert order_transitions.is_full_refund(event) is True

    @pytest.mark.parametrize("amount", ["abc", "1000", 10.5, True, {"value": 1000}])
    def test_non_integer_amount_is_incoherent(self, amount):
        event = _refund_event("charge.refunded", {"amount": amount, "amount_refunded": 1000})
        assert order_transitions.refund_amounts(event) is None
        assert order_transitions.is_full_refund(event) is False

    def test_missing_amounts_count_as_zero(self):
        assert order_transitions.refund_amounts(_refund_event("charge.refunded", {})) == (0, 0)

    def test_zero_base_is_never_full(self):
        event = _refund_event("charge.refunded", {"amount": 0, "amount_refunded": 0})
        assert order_transitions.is_full_refund(event) is False

    def test_partial_refund_applies_nothing(self, db, make_order):
        order = make_order(status="paid")
        event = _refund_event("charge.refunded", {"amount": 1000, "amount_refunded": 10})
        assert order_transitions.apply_event(db, RouteKind.REFUND, event, order.id, now=NOW) is None
        assert reload(db, Order, order.id).status == "paid"
