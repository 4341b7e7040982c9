from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from orderledger.db.base import Base, JSONType


class PaymentEvent(Base):
    """
    Ledger of received provider events.

    - UNIQUE(stripe_event_id) is the idempotence primitive: one row per provider event
    - orphaned: the event could not (yet) be tied to a coherent order
    - order_id is a plain back reference, not a foreign key
    - payload is a whitelisted snapshot, never the raw event
    """
    __tablename__ = "payment_events"

    id: Mapped[int] = mapped_column(primary_key=True)

    stripe_event_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100), index=True)

    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    orphaned: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    orphan_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    payload: Mapped[dict] = mapped_column(JSONType, default=dict)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
