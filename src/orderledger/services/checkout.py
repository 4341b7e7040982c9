from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from orderledger.core.config import settings
from orderledger.core.errors import AppError
from orderledger.core.logging import get_payment_logger
from orderledger.integrations.stripe.client import PaymentGateway
from orderledger.models.product import Product
from orderledger.repositories import orders as order_repo
from orderledger.services.order_transitions import mark_failed

log = get_payment_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    checkout_url: str
    stripe_session_id: str
    order_id: str


def create_checkout_session(
    db: Session,
    gateway: PaymentGateway,
    *,
    user_id: str,
    product_id: str,
) -> CheckoutResult:
    product = db.get(Product, product_id)
    if product is None or not product.active:
        raise AppError("Invalid product", 400, "INVALID_PRODUCT")

    order = order_repo.create_pending(
        db,
        user_id=user_id,
        product_id=product.id,
        amount_cents=product.amount_cents,
        currency=product.currency,
    )

    try:
        session = gateway.create_checkout_session(
            order_id=order.id,
            amount_cents=order.amount_cents,
            currency=order.currency,
        )
    except Exception as e:
        mark_failed(db, order.id)
        db.commit()
        log.warning(
            "checkout session failed, order marked failed",
            order_id=order.id,
            user_id=user_id,
            error=str(e),
        )
        message = f"Payment setup failed: {e}" if settings.env == "local" else "Payment setup failed"
        raise AppError(message, 502, "STRIPE_ERROR") from e

    order_repo.set_session_id(db, order.id, session.session_id)
    log.info(
        "checkout session created",
        order_id=order.id,
        user_id=user_id,
        stripe_session_id=session.session_id,
    )
    return CheckoutResult(
        checkout_url=session.url,
        stripe_session_id=session.session_id,
        order_id=order.id,
    )
