from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CheckoutSessionIn(BaseModel):
    # server-priced: the client only names the product
    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(min_length=1)


class CheckoutSessionOut(BaseModel):
    checkout_url: str
    stripe_session_id: str
    order_id: str


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    amount_cents: int
    currency: str
    paid_at: Optional[datetime] = None
    created_at: datetime
