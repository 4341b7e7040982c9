"""
Request id propagation.

Every HTTP request gets an id (reused from X-Request-ID when the caller sends a
sane one). It is stored in a ContextVar so log records and error bodies can pick
it up without threading it through every call.
"""
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable

from fastapi import Request, Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def _incoming_or_new(request: Request) -> str:
    incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = _incoming_or_new(request)
    token = _request_id.set(request_id)
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    finally:
        _request_id.reset(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
