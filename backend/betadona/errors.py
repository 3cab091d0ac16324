"""
backend/betadona/errors.py

Purpose:
    App-wide exception handlers. Database and id-parsing failures become short,
    stable JSON errors; the real exception is only written to the log.
"""

import logging

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

logger = logging.getLogger("betadona.errors")

_UNAVAILABLE = "Service temporarily unavailable."
_INTERNAL = "An internal error occurred."

_MAPPED: list[tuple[type[Exception], int, str, int]] = [
    (InvalidId, 400, "Invalid ID.", logging.DEBUG),
    (DuplicateKeyError, 409, "Duplicate entry.", logging.INFO),
    (ServerSelectionTimeoutError, 503, _UNAVAILABLE, logging.ERROR),
    (ConnectionFailure, 503, _UNAVAILABLE, logging.ERROR),
    (OperationFailure, 500, _INTERNAL, logging.ERROR),
]


def _field_name(loc: tuple) -> str:
    # ("body", "bets", 0, "stake") -> "bets.0.stake"
    if not loc:
        return "unknown"
    parts = loc[1:] if len(loc) > 1 else loc
    return ".".join(str(part) for part in parts)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "Invalid value.")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


def _mapped_handler(status_code: int, detail: str, level: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.log(
            level, "%s on %s %s: %s",
            type(exc).__name__, request.method, request.url.path, exc,
        )
        return JSONResponse(status_code=status_code, content={"detail": detail})

    return handler


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": _INTERNAL})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_error)
    for exc_type, status_code, detail, level in _MAPPED:
        app.add_exception_handler(exc_type, _mapped_handler(status_code, detail, level))
    app.add_exception_handler(Exception, _unhandled)
