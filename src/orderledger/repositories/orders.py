from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from orderledger.core.order_status import ORDER_STATUS_PENDING
from orderledger.models.order import Order


@dataclass(frozen=True)
class TransitionFields:
    """Columns a status transition may also set. None keeps the stored value."""
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None


def _keep_or_set(column: Any, value: Any) -> Any:
    return column if value is None else value


def find_by_id(db: Session, order_id: str) -> Optional[Order]:
    return db.get(Order, order_id)


def find_by_payment_reference(db: Session, payment_intent_id: str) -> Optional[Order]:
    return db.scalars(
        select(Order).where(Order.stripe_payment_intent_id == payment_intent_id).limit(1)
    ).first()


def list_ids_for_user(db: Session, user_id: str) -> list[str]:
    return list(db.scalars(select(Order.id).where(Order.user_id == user_id)))


def create_pending(
    db: Session,
    *,
    user_id: str,
    product_id: Optional[str],
    amount_cents: int,
    currency: str,
) -> Order:
    if amount_cents < 0:
        raise ValueError("amount_cents must be >= 0")
    order = Order(
        user_id=user_id,
        product_id=product_id,
        amount_cents=amount_cents,
        currency=currency.lower(),
        status=ORDER_STATUS_PENDING,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def set_session_id(db: Session, order_id: str, session_id: str) -> None:
    db.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(stripe_session_id=session_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def conditional_update_status(
    db: Session,
    order_id: str,
    *,
    expected_status_in: Iterable[str],
    new_status: str,
    fields: TransitionFields = TransitionFields(),
) -> int:
    """
    UPDATE ... WHERE id = :id AND status IN (:expected). Returns the row count (0 or 1).

    Does not commit; the caller owns the transaction so a transition can be paired
    with a ledger update atomically.
    """
    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(list(expected_status_in)))
        .values(
            status=new_status,
            stripe_session_id=_keep_or_set(Order.stripe_session_id, fields.stripe_session_id),
            stripe_payment_intent_id=_keep_or_set(
                Order.stripe_payment_intent_id, fields.stripe_payment_intent_id
            ),
            paid_at=_keep_or_set(Order.paid_at, fields.paid_at),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
