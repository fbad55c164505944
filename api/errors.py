"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    ConfigurationError,
    InvalidTransitionError,
    InvoiceLockedError,
    DuplicateNumberError,
    NoOpChangeError,
    PaymentNotAllowedError,
    OverpaymentError,
)

logger = logging.getLogger(__name__)


# exception class -> (HTTP status, error code)
INVOICING_ERRORS = {
    InvoiceLockedError: (423, ErrorCodes.INVOICE_NUMBER_LOCKED),
    DuplicateNumberError: (409, ErrorCodes.DUPLICATE_INVOICE_NUMBER),
    NoOpChangeError: (400, ErrorCodes.NO_OP_CHANGE),
    InvalidTransitionError: (409, ErrorCodes.INVALID_STATUS_TRANSITION),
    PaymentNotAllowedError: (409, ErrorCodes.PAYMENT_NOT_ALLOWED),
    OverpaymentError: (400, ErrorCodes.OVERPAYMENT),
    ConfigurationError: (500, ErrorCodes.CONFIGURATION_ERROR),
}


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    async def invoicing_error_handler(request: Request, exc: Exception):
        status_code, code = INVOICING_ERRORS[type(exc)]
        if status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc)
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, str(exc)).model_dump(mode="json"),
        )

    for exc_class in INVOICING_ERRORS:
        app.add_exception_handler(exc_class, invoicing_error_handler)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return JSONResponse(
                status_code=404,
                content=error_response(ErrorCodes.NOT_FOUND, message).model_dump(mode="json"),
            )
        return JSONResponse(
            status_code=400,
            content=error_response(ErrorCodes.INVALID_REQUEST, message).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
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
            ).model_dump(mode="json"),
        )
