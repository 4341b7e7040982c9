from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orderledger.api.v1.routers.health import router as health_router
from orderledger.api.v1.routers.payments import router as payments_router
from orderledger.api.v1.routers.stripe_webhook import router as stripe_router
from orderledger.core.config import settings, validate_production_settings
from orderledger.core.errors import AppError
from orderledger.core.logging import configure_logging, error_context, get_payment_logger
from orderledger.core.request_context import get_request_id, request_id_middleware

log = get_payment_logger(__name__)

app = FastAPI(title="orderledger", version="0.1.0")
app.middleware("http")(request_id_middleware)
app.include_router(health_router, prefix="/api/v1")
app.include_router(stripe_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")


def _error_body(message: str, code: str | None = None) -> dict:
    body: dict = {"error": message}
    if code:
        body["code"] = code
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(exc.message, status_code=exc.status_code, error_code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error(
        "unhandled error",
        exc_info=not settings.is_production or settings.log_stack_in_prod,
        status_code=500,
        **error_context(exc, settings, error_code="internal_error"),
    )
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


@app.on_event("startup")
def validate_settings() -> None:
    configure_logging(settings)
    if settings.env == "local" and not settings.db_password and not settings.database_url_override:
        raise RuntimeError("DB_PASSWORD is missing. Check your .env file.")
    validate_production_settings(settings)
