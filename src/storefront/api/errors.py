"""HTTP translation of the storefront error taxonomy.

Protean's own handlers cover ``ValidationError`` and ``ObjectNotFoundError``;
the storefront failures are mapped here by class.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from storefront.errors import (
    CommitCancelledError,
    ConcurrencyConflict,
    FulfillmentError,
    InsufficientStockError,
    LocationError,
    TransportError,
    WorkflowInProgressError,
    WorkflowStateError,
)

ERROR_STATUS_CODES = {
    ConcurrencyConflict: 409,
    WorkflowInProgressError: 409,
    WorkflowStateError: 409,
    InsufficientStockError: 409,
    CommitCancelledError: 409,
    LocationError: 422,
    TransportError: 502,
}


def _error_body(exc: FulfillmentError) -> dict:
    body = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, LocationError):
        body["reason"] = exc.reason.value
    elif isinstance(exc, InsufficientStockError):
        body["offending_items"] = [item.to_dict() for item in exc.offending_items]
    elif isinstance(exc, TransportError) and exc.service:
        body["service"] = exc.service
    return body


async def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    return JSONResponse(status_code=ERROR_STATUS_CODES.get(type(exc), 500), content=_error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)
    app.add_exception_handler(FulfillmentError, fulfillment_error_handler)
