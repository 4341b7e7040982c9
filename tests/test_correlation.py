from datetime import datetime, timezone

import pytest

from conftest import charge_object, session_object
from orderledger.core.stripe_events import OrphanReason, RouteKind
from orderledger.integrations.stripe.webhook import VerifiedEvent
from orderledger.models.order import Order
from orderledger.services.correlation import order_reference, resolve, session_sanity_check


def _event(event_type: str, obj: dict) -> VerifiedEvent:
    return VerifiedEvent(
        id="evt_corr",
        type=event_type,
        created=datetime.now(timezone.utc),
        livemode=False,
        data_object=obj,
    )


def _order(**overrides) -> Order:
    values = {"id": "order-1", "user_id": "u", "amount_cents": 1000, "currency": "eur", "status": "pending"}
    values.update(overrides)
    return Order(**values)


class TestSanityCheck:
    def test_strict_exact_match(self):
        assert session_sanity_check(session_object("order-1"), _order(), "strict") is True

    @pytest.mark.parametrize("mode", ["strict", "flex"])
    def test_one_cent_short_fails(self, mode):
        assert session_sanity_check(session_object("order-1", amount_total=999), _order(), mode) is False

    def test_strict_overpayment_fails(self):
        assert session_sanity_check(session_object("order-1", amount_total=1001), _order(), "strict") is False

    def test_flex_overpayment_passes(self):
        assert session_sanity_check(session_object("order-1", amount_total=1250), _order(), "flex") is True

    def test_flex_requires_paid_status(self):
        session = session_object("order-1", amount_total=1250, payment_status="unpaid")
        assert session_sanity_check(session, _order(), "flex") is False

    def test_currency_is_case_insensitive(self):
        assert session_sanity_check(session_object("order-1", currency="EUR"), _order(), "strict") is True

    def test_currency_mismatch_fails(self):
        assert session_sanity_check(session_object("order-1", currency="usd"), _order(), "strict") is False

    def test_subscription_mode_fails(self):
        assert session_sanity_check(session_object("order-1", mode="subscription"), _order(), "strict") is False

    def test_reference_must_match_order(self):
        assert session_sanity_check(session_object("order-2"), _order(), "strict") is False

    def test_missing_total_fails(self):
        session = session_object("order-1")
        session["amount_total"] = None
        assert session_sanity_check(session, _order(), "strict") is False


class TestOrderReference:
    def test_metadata_preferred(self):
        assert order_reference({"metadata": {"orderId": "a"}, "client_reference_id": "b"}) == "a"

    def test_client_reference_fallback(self):
        assert order_reference({"metadata": {}, "client_reference_id": "b"}) == "b"

    def test_none_when_absent(self):
        assert order_reference({"metadata": None}) is None

    def test_non_object_metadata_is_ignored(self):
        assert order_reference({"metadata": "oops"}) is None
        assert order_reference({"metadata": "oops", "client_reference_id": "b"}) == "b"

    def test_non_string_reference_is_ignored(self):
        assert order_reference({"metadata": {"orderId": 42}, "client_reference_id": ["x"]}) is None


class TestResolve:
    def test_unknown_kind(self, db):
        correlation = resolve(db, _event("customer.created", {}), None, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.UNKNOWN_EVENT_TYPE
        assert correlation.order_id is None

    def test_completion_without_reference(self, db):
        event = _event("checkout.session.completed", session_object(None))
        correlation = resolve(db, event, RouteKind.COMPLETION, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.NO_ORDER_ID

    def test_completion_order_missing(self, db):
        event = _event("checkout.session.completed", session_object("nope"))
        correlation = resolve(db, event, RouteKind.COMPLETION, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.ORDER_NOT_FOUND

    def test_completion_not_paid_keeps_order_id(self, db, make_order):
        order = make_order()
        event = _event("checkout.session.completed", session_object(order.id, payment_status="unpaid"))
        correlation = resolve(db, event, RouteKind.COMPLETION, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.PAYMENT_NOT_PAID
        assert correlation.order_id == order.id
        assert correlation.resolved is False

    def test_completion_resolved(self, db, make_order):
        order = make_order()
        event = _event("checkout.session.completed", session_object(order.id))
        correlation = resolve(db, event, RouteKind.COMPLETION, pricing_mode="strict")
        assert correlation.resolved is True
        assert correlation.order_id == order.id

    def test_failure_only_needs_the_order(self, db, make_order):
        order = make_order()
        event = _event("checkout.session.expired", session_object(order.id, amount_total=1, payment_status="unpaid"))
        assert resolve(db, event, RouteKind.FAILURE, pricing_mode="strict").resolved is True

    def test_refund_by_payment_intent(self, db, make_order):
        order = make_order(status="paid", stripe_payment_intent_id="pi_match")
        event = _event("charge.refunded", charge_object("pi_match"))
        correlation = resolve(db, event, RouteKind.REFUND, pricing_mode="strict")
        assert correlation.order_id == order.id
        assert correlation.resolved is True

    def test_refund_expanded_payment_intent(self, db, make_order):
        order = make_order(status="paid", stripe_payment_intent_id="pi_exp")
        obj = charge_object(None)
        obj["payment_intent"] = {"id": "pi_exp", "object": "payment_intent"}
        correlation = resolve(db, _event("charge.refunded", obj), RouteKind.REFUND, pricing_mode="strict")
        assert correlation.order_id == order.id

    def test_refund_without_any_reference(self, db):
        correlation = resolve(db, _event("charge.refunded", charge_object(None)), RouteKind.REFUND, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.NO_ORDER_ID

    def test_payment_intent_refund_falls_back_to_metadata(self, db, make_order):
        order = make_order(status="paid")
        obj = {"id": "pi_unstored", "amount_received": 1000, "amount_refunded": 1000, "currency": "eur", "metadata": {"orderId": order.id}}
        correlation = resolve(db, _event("payment_intent.refunded", obj), RouteKind.REFUND, pricing_mode="strict")
        assert correlation.order_id == order.id

    def test_refund_with_non_integer_amount(self, db, make_order):
        make_order(status="paid", stripe_payment_intent_id="pi_bad_amount")
        obj = charge_object("pi_bad_amount")
        obj["amount"] = "abc"
        correlation = resolve(db, _event("charge.refunded", obj), RouteKind.REFUND, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.SANITY_CHECK_FAILED

    def test_boolean_total_fails_sanity_check(self):
        session = session_object("order-1")
        session["amount_total"] = True
        assert session_sanity_check(session, _order(amount_cents=1), "strict") is False

    def test_refund_currency_mismatch(self, db, make_order):
        make_order(status="paid", stripe_payment_intent_id="pi_usd", currency="eur")
        event = _event("charge.refunded", charge_object("pi_usd", currency="usd"))
        correlation = resolve(db, event, RouteKind.REFUND, pricing_mode="strict")
        assert correlation.orphan_reason is OrphanReason.SANITY_CHECK_FAILED
