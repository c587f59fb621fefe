"""
Exception handlers: domain errors become `{"success": false, "message": ...}`
with a status code per error class.
"""
from __future__ import annotations

import logging
from typing import Dict, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from dotareg.errors import (
    AuthenticationError,
    ConflictError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
    PlayerBannedError,
    RateLimitedError,
    RegistrationClosedError,
    RegistrationError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[Type[RegistrationError], int] = {
    InputError:              400,
    AuthenticationError:     401,
    RegistrationClosedError: 403,
    PlayerBannedError:       403,
    PermissionDeniedError:   403,
    NotFoundError:           404,
    ConflictError:           409,
    RateLimitedError:        429,
    UpstreamError:           502,
}


def status_for(exc: RegistrationError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


def _clean(message: str) -> str:
    return message.removeprefix("Value error, ")


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    body = {"success": False, "message": exc.message}
    if isinstance(exc, ConflictError):
        body["field"] = exc.field
    if isinstance(exc, RegistrationClosedError):
        body["state"] = exc.state
    if isinstance(exc, UpstreamError):
        logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_for(exc), content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": _clean(err.get("msg", "Invalid value")),
        }
        for err in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "errors": errors},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.info("Unique constraint rejected %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=409,
        content={"success": False, "message": "Record already exists"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
