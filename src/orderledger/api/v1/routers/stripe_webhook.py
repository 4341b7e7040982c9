from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from orderledger.api.deps import db_session
from orderledger.services.webhook_processing import handle_delivery

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(db_session),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
):
    # raw bytes only: signature verification must see exactly what was sent
    payload = await request.body()

    ack = await run_in_threadpool(
        handle_delivery,
        db,
        payload,
        stripe_signature,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=ack.status_code, content=ack.body)
