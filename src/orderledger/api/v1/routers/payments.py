from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderledger.api.deps import Principal, current_principal, db_session
from orderledger.api.v1.schemas.payments import CheckoutSessionIn, CheckoutSessionOut, OrderOut
from orderledger.core.errors import AppError
from orderledger.integrations.stripe.client import PaymentGateway, get_stripe_gateway
from orderledger.repositories import orders as order_repo
from orderledger.services.checkout import create_checkout_session

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/checkout-session", response_model=CheckoutSessionOut)
def checkout_session(
    payload: CheckoutSessionIn,
    principal: Principal = Depends(current_principal),
    db: Session = Depends(db_session),
    gateway: PaymentGateway = Depends(get_stripe_gateway),
):
    result = create_checkout_session(db, gateway, user_id=principal.id, product_id=payload.product_id)
    return CheckoutSessionOut(
        checkout_url=result.checkout_url,
        stripe_session_id=result.stripe_session_id,
        order_id=result.order_id,
    )


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    principal: Principal = Depends(current_principal),
    db: Session = Depends(db_session),
):
    # clients poll this after the checkout redirect; only the webhook marks orders paid
    order = order_repo.find_by_id(db, order_id)
    if order is None or (order.user_id != principal.id and not principal.is_admin):
        raise AppError("Order not found", 404, "NOT_FOUND")
    return OrderOut.model_validate(order)
