"""
Custom exception handlers for the inspection API.
Maps the bot's error taxonomy onto HTTP responses.
"""

from fastapi import Request
from fastapi.exception_handlers import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

import sentry_sdk

from receipt_bot.core.config import settings
from receipt_bot.core.exceptions import NotFoundError, StorageError


def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=HTTP_404_NOT_FOUND,
        content={"error": "Not found", "details": str(exc)},
    )


def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(
        status_code=HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Storage unavailable", "details": str(exc)},
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "details": exc.errors(),
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc),
        },
    )
