"""Translate every exception that escapes a handler into the error envelope."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from viztube.api.responses import error_response

logger = logging.getLogger(__name__)


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        # Drop the "body"/"query"/"path" prefix from the location
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.append({"field": ".".join(loc), "message": message})
    return errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(
        exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = _field_errors(exc)
    message = errors[0]["message"] if len(errors) == 1 else "Validation failed"
    return error_response(400, message, errors)


def _constraint_kind(exc: IntegrityError) -> str:
    """Classify a driver error as ``unique``, ``foreign_key`` or ``other``."""
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate == "23505":
        return "unique"
    if sqlstate == "23503":
        return "foreign_key"

    message = str(exc.orig).lower()
    if "unique" in message or "duplicate" in message:
        return "unique"
    if "foreign key" in message:
        return "foreign_key"
    return "other"


async def integrity_error_handler(request: Request, exc: IntegrityError):
    kind = _constraint_kind(exc)
    if kind == "unique":
        logger.info(f"Unique constraint rejected write on {request.url.path}")
        return error_response(409, "Resource already exists")
    if kind == "foreign_key":
        logger.info(f"Write on {request.url.path} referenced a missing row")
        return error_response(404, "Referenced resource not found")

    logger.error(f"Integrity error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(409, "Request conflicts with existing data")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on ``app``.

    slowapi's ``RateLimitExceeded`` is an ``HTTPException`` subclass, so
    rate-limit errors go through ``http_exception_handler`` as 429s.
    """
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
