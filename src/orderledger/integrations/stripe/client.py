"""
Outbound Stripe calls.

`StripeGateway` carries its own api key and version on every call instead of
setting `stripe.api_key` globally. `get_stripe_gateway` builds it once per process
and is used as a FastAPI dependency, so tests swap it via dependency_overrides.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Protocol

import stripe

from orderledger.core.config import settings
from orderledger.core.errors import AppError


@dataclass(frozen=True)
class CheckoutSession:
    url: str
    session_id: str


@dataclass(frozen=True)
class SessionStatus:
    session_id: str
    payment_status: str
    amount_total: int
    payment_intent_id: Optional[str]


class PaymentGateway(Protocol):
    def create_checkout_session(
        self,
        *,
        order_id: str,
        amount_cents: int,
        currency: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession: ...

    def retrieve_checkout_session(self, session_id: str) -> SessionStatus: ...


def payment_intent_id_of(value: Any) -> Optional[str]:
    """payment_intent is either an id string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if value is None:
        return None
    pi_id = value.get("id") if hasattr(value, "get") else getattr(value, "id", None)
    return pi_id if isinstance(pi_id, str) and pi_id else None


class StripeGateway:
    def __init__(self, api_key: str, api_version: str, *, success_url: str, cancel_url: str):
        self._api_key = api_key
        self._api_version = api_version
        self._success_url = success_url
        self._cancel_url = cancel_url

    def create_checkout_session(
        self,
        *,
        order_id: str,
        amount_cents: int,
        currency: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": amount_cents,
                        "product_data": {"name": "Order", "description": f"Order {order_id}"},
                    },
                    "quantity": 1,
                }
            ],
            # redirect only; payment is confirmed by the webhook, never by this URL
            "success_url": self._success_url,
            "cancel_url": self._cancel_url,
            "client_reference_id": order_id,
            "metadata": {"orderId": order_id},
        }
        if customer_email and customer_email.strip():
            params["customer_email"] = customer_email.strip()

        session = stripe.checkout.Session.create(
            api_key=self._api_key,
            stripe_version=self._api_version,
            **params,
        )
        if not session.url:
            raise RuntimeError("Stripe did not return a checkout URL")
        return CheckoutSession(url=session.url, session_id=session.id)

    def retrieve_checkout_session(self, session_id: str) -> SessionStatus:
        session = stripe.checkout.Session.retrieve(
            session_id,
            api_key=self._api_key,
            stripe_version=self._api_version,
            expand=["payment_intent"],
        )
        return SessionStatus(
            session_id=session.id,
            payment_status=session.payment_status or "",
            amount_total=session.amount_total or 0,
            payment_intent_id=payment_intent_id_of(session.payment_intent),
        )


@lru_cache(maxsize=1)
def get_stripe_gateway() -> StripeGateway:
    api_key = settings.stripe_api_key.get_secret_value() if settings.stripe_api_key else ""
    if not api_key:
        raise AppError("Payments not configured", 500, "NOT_CONFIGURED")
    return StripeGateway(
        api_key,
        settings.stripe_api_version,
        success_url=settings.stripe_success_url,
        cancel_url=settings.stripe_cancel_url,
    )
