import hashlib
import hmac
import json
import os
import tempfile
import time
import uuid

import pytest

TEST_WEBHOOK_SECRET = "whsec_testsecret0123456789abcdef"

# Must be set before orderledger is imported: the engine is built from settings at import time.
_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL_OVERRIDE"] = f"sqlite:///{_db_path}"
os.environ["STRIPE_WEBHOOK_SECRET"] = TEST_WEBHOOK_SECRET
os.environ["PRICING_MODE"] = "strict"

from fastapi.testclient import TestClient  # noqa: E402

from orderledger.core.config import settings  # noqa: E402
from orderledger.db.base import Base  # noqa: E402
from orderledger.db.session import SessionLocal, engine  # noqa: E402
from orderledger.main import app  # noqa: E402
from orderledger.models import order, payment_event, product  # noqa: F401, E402
from orderledger.models.order import Order  # noqa: E402
from orderledger.models.payment_event import PaymentEvent  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    os.close(_db_fd)
    if os.path.exists(_db_path):
        os.unlink(_db_path)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    monkeypatch.setattr(settings, "pricing_mode", "strict")
    monkeypatch.setattr(settings, "orphan_retry_window_hours", 24)
    yield


def sign(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def make_event(event_type: str, obj: dict, *, event_id: str | None = None, created: int | None = None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "created": int(created if created is not None else time.time()),
        "livemode": False,
        "data": {"object": obj},
    }


def session_object(
    order_id: str | None,
    *,
    amount_total: int = 1000,
    currency: str = "eur",
    payment_status: str = "paid",
    mode: str = "payment",
    session_id: str = "cs_test_1",
    payment_intent: str | None = "pi_test_1",
) -> dict:
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": mode,
        "amount_total": amount_total,
        "currency": currency,
        "payment_status": payment_status,
        "payment_intent": payment_intent,
        "client_reference_id": order_id,
        "metadata": {"orderId": order_id} if order_id else {},
        "customer_details": {"email": "someone@example.com"},
    }


def charge_object(payment_intent: str | None, *, amount: int = 1000, amount_refunded: int = 1000, currency: str = "eur") -> dict:
    return {
        "id": "ch_test_1",
        "object": "charge",
        "amount": amount,
        "amount_refunded": amount_refunded,
        "currency": currency,
        "payment_intent": payment_intent,
    }


def reload(db, model, pk):
    db.expire_all()
    obj = db.get(model, pk)
    # end the read transaction so the app's writers are never blocked
    db.commit()
    return obj


def ledger_rows(db, stripe_event_id: str) -> list:
    db.expire_all()
    rows = db.query(PaymentEvent).filter(PaymentEvent.stripe_event_id == stripe_event_id).all()
    db.commit()
    return rows


@pytest.fixture
def post_event(client):
    def _post(event: dict, *, signature: str | None = None, secret: str = TEST_WEBHOOK_SECRET):
        body = json.dumps(event).encode()
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature if signature is not None else sign(body, secret)
        return client.post("/api/v1/stripe/webhook", content=body, headers=headers)

    return _post


@pytest.fixture
def make_order(db):
    def _make(**overrides) -> Order:
        values = {
            "id": str(uuid.uuid4()),
            "user_id": "user-1",
            "product_id": "prod-1",
            "amount_cents": 1000,
            "currency": "eur",
            "status": "pending",
        }
        values.update(overrides)
        row = Order(**values)
        db.add(row)
        db.commit()
        return row

    return _make
