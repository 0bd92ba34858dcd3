"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    OverpaymentError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# (HTTP status, error code) per ledger failure kind
LEDGER_ERROR_STATUS: dict[type[LedgerError], tuple[int, str]] = {
    ValidationError: (400, ErrorCodes.VALIDATION_ERROR),
    NotFoundError: (404, ErrorCodes.NOT_FOUND),
    ForbiddenError: (403, ErrorCodes.FORBIDDEN),
    InvalidStateError: (409, ErrorCodes.INVALID_STATE),
    OverpaymentError: (400, ErrorCodes.OVERPAYMENT),
    ConflictError: (409, ErrorCodes.CONFLICT),
    StorageError: (503, ErrorCodes.STORAGE_ERROR),
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code, code = LEDGER_ERROR_STATUS.get(
            type(exc), (500, ErrorCodes.INTERNAL_ERROR)
        )
        if status_code >= 500:
            logger.error("Ledger failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, str(exc), _request_id(request)).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                _request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                _request_id(request),
            ).model_dump(mode="json"),
        )
