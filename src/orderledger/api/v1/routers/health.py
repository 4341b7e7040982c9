from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session

from orderledger.api.deps import db_session
from orderledger.core.errors import AppError
from orderledger.core.metrics import metrics

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/db-ping")
def db_ping(db: Session = Depends(db_session)):  # noqa: B008
    db.execute(text("SELECT 1"))
    return {"db": "ok"}


@router.get("/metrics")
def prometheus_metrics():
    if not metrics.enabled:
        raise AppError("Not found", 404, "NOT_FOUND")
    return Response(content=generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)
