from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import stripe

from orderledger.core.errors import InvalidSignature, MissingPayload, MissingSignature, NotConfigured


@dataclass(frozen=True)
class VerifiedEvent:
    id: str
    type: str
    created: datetime | None
    livemode: bool | None
    data_object: dict[str, Any] = field(default_factory=dict)


def _parse_event(payload: bytes) -> VerifiedEvent:
    try:
        raw = json.loads(payload)
    except ValueError as e:
        raise InvalidSignature("payload is not valid JSON") from e

    if not isinstance(raw, dict) or not raw.get("id") or not raw.get("type"):
        raise InvalidSignature("payload is not an event")

    data = raw.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None

    created = raw.get("created")
    return VerifiedEvent(
        id=str(raw["id"]),
        type=str(raw["type"]),
        created=datetime.fromtimestamp(created, tz=timezone.utc) if isinstance(created, (int, float)) else None,
        livemode=raw.get("livemode"),
        data_object=obj if isinstance(obj, dict) else {},
    )


def construct_event(
    payload: bytes | None,
    signature: str | None,
    secret: str | None,
    *,
    tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
) -> VerifiedEvent:
    """
    Verify the Stripe-Signature header against the exact received bytes, then parse.
    Nothing may touch the body before this call.
    """
    if not payload:
        raise MissingPayload()
    if not signature:
        raise MissingSignature()
    if not secret:
        raise NotConfigured()

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidSignature("payload is not utf-8") from e

    try:
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(str(e)) from e

    return _parse_event(payload)
