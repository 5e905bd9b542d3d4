"""HTTP mapping for order lifecycle errors.

Protean's own handlers cover ValidationError (400); the project errors are
mapped here with a uniform ``{"error": message}`` body.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.integrations.fastapi import register_exception_handlers

from ordering.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    OrderingError,
    PaymentInProgressError,
    ReconciliationError,
    SignatureError,
    StockError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    StockError: 409,
    AuthorizationError: 403,
    SignatureError: 400,
    ReconciliationError: 409,
    PaymentInProgressError: 409,
    ExternalServiceError: 502,
}


async def _ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message, **exc.context)
    return JSONResponse(status_code=status_code, content={"error": exc.message, **_public_context(exc)})


def _public_context(exc: OrderingError) -> dict:
    if isinstance(exc, StockError):
        return {key: exc.context[key] for key in ("product_id", "available") if key in exc.context}
    return {}


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:  # noqa: ARG001
    return JSONResponse(status_code=404, content={"error": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    for error_class in STATUS_CODES:
        app.add_exception_handler(error_class, _ordering_error)
