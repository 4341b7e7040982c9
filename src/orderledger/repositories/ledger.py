"""
PaymentEvent ledger access.

`create_if_absent` turns the storage-level outcome into a tagged result instead
of leaking IntegrityError to callers: exactly one concurrent writer gets
`LedgerCreated`, every other one gets `LedgerDuplicate` with the winning row.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from orderledger.core.stripe_events import OrphanReason
from orderledger.models.payment_event import PaymentEvent


@dataclass(frozen=True)
class LedgerEntry:
    event_type: str
    order_id: Optional[str]
    orphan_reason: Optional[OrphanReason]
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def orphaned(self) -> bool:
        return self.orphan_reason is not None


@dataclass(frozen=True)
class LedgerCreated:
    row: PaymentEvent


@dataclass(frozen=True)
class LedgerDuplicate:
    existing: PaymentEvent


@dataclass(frozen=True)
class LedgerFailure:
    error: Exception


LedgerWriteResult = Union[LedgerCreated, LedgerDuplicate, LedgerFailure]


def find_by_event_id(db: Session, stripe_event_id: str) -> Optional[PaymentEvent]:
    return db.scalars(
        select(PaymentEvent).where(PaymentEvent.stripe_event_id == stripe_event_id)
    ).first()


def create_if_absent(db: Session, stripe_event_id: str, entry: LedgerEntry) -> LedgerWriteResult:
    row = PaymentEvent(
        stripe_event_id=stripe_event_id,
        event_type=entry.event_type,
        order_id=entry.order_id,
        orphaned=entry.orphaned,
        orphan_reason=entry.orphan_reason.value if entry.orphan_reason else None,
        payload=entry.payload,
    )

    try:
        db.add(row)
        db.commit()
        return LedgerCreated(row=row)
    except IntegrityError as e:
        db.rollback()
        try:
            existing = find_by_event_id(db, stripe_event_id)
        except SQLAlchemyError as lookup_error:
            db.rollback()
            return LedgerFailure(error=lookup_error)
        if existing is None:
            # integrity error that was not the uniqueness arbiter
            return LedgerFailure(error=e)
        return LedgerDuplicate(existing=existing)
    except SQLAlchemyError as e:
        db.rollback()
        return LedgerFailure(error=e)


def mark_repaired(db: Session, stripe_event_id: str, order_id: str) -> int:
    """Flip an orphaned row to resolved. Does not commit."""
    result = db.execute(
        update(PaymentEvent)
        .where(PaymentEvent.stripe_event_id == stripe_event_id, PaymentEvent.orphaned.is_(True))
        .values(orphaned=False, orphan_reason=None, order_id=order_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def list_orphans_since(db: Session, since: datetime) -> list[PaymentEvent]:
    return list(
        db.scalars(
            select(PaymentEvent)
            .where(PaymentEvent.orphaned.is_(True), PaymentEvent.received_at >= since)
            .order_by(PaymentEvent.received_at.desc())
        )
    )


def delete_received_before(db: Session, cutoff: datetime) -> int:
    result = db.execute(
        delete(PaymentEvent)
        .where(PaymentEvent.received_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def delete_for_orders(db: Session, order_ids: list[str]) -> int:
    if not order_ids:
        return 0
    result = db.execute(
        delete(PaymentEvent)
        .where(PaymentEvent.order_id.in_(order_ids))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
