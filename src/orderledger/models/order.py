import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from orderledger.core.order_status import ORDER_STATUS_PENDING
from orderledger.db.base import Base


def _new_order_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_orders_amount_cents_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_order_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # fixed at creation; nothing updates these two columns
    amount_cents: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3))

    status: Mapped[str] = mapped_column(String(20), default=ORDER_STATUS_PENDING, index=True)

    stripe_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # refund events are correlated through this column
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
