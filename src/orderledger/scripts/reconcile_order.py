"""
Reconcile one order against its Stripe Checkout Session (ops only, no route).

  ORDER_ID=<id> python -m orderledger.scripts.reconcile_order
  python -m orderledger.scripts.reconcile_order <id>

Use after an outage when a webhook may have been missed or given up on.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from orderledger.core.config import settings
from orderledger.core.logging import configure_logging, get_payment_logger
from orderledger.db.session import SessionLocal
from orderledger.integrations.stripe.client import PaymentGateway, get_stripe_gateway
from orderledger.repositories import orders as order_repo
from orderledger.services.order_transitions import mark_paid

log = get_payment_logger(__name__)


def reconcile_order(db: Session, gateway: PaymentGateway, order_id: str) -> str:
    order = order_repo.find_by_id(db, order_id)
    if order is None:
        raise LookupError(f"order {order_id} not found")
    if not order.stripe_session_id:
        raise LookupError(f"order {order_id} has no stripe session")

    session = gateway.retrieve_checkout_session(order.stripe_session_id)

    if session.payment_status != "paid":
        outcome = "not_paid"
    elif session.amount_total < order.amount_cents:
        outcome = "amount_mismatch"
    else:
        result = mark_paid(
            db,
            order.id,
            session_id=None,
            payment_intent_id=None if order.stripe_payment_intent_id else session.payment_intent_id,
            now=datetime.now(timezone.utc),
        )
        db.commit()
        outcome = "updated" if result.applied else "noop"

    log.info(
        "reconcile order",
        order_id=order.id,
        stripe_session_id=order.stripe_session_id,
        payment_status=session.payment_status,
        outcome=outcome,
    )
    return outcome


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(settings)
    args = list(sys.argv[1:] if argv is None else argv)
    order_id = (os.environ.get("ORDER_ID") or (args[0] if args else "")).strip()
    if not order_id:
        print("Usage: ORDER_ID=<id> python -m orderledger.scripts.reconcile_order  OR  ... reconcile_order <id>")
        return 1

    with SessionLocal() as db:
        try:
            outcome = reconcile_order(db, get_stripe_gateway(), order_id)
        except LookupError as e:
            print(str(e), file=sys.stderr)
            return 1
    print(f"Reconcile: {outcome}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
