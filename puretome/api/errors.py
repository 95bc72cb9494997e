"""
Exception handlers.

Services raise domain errors; they become JSON here and nowhere else.
Every error body has a "message" key; validation errors add "errors", a
map of field name to message.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from puretome.core.errors import PureTomeError, ValidationError

logger = logging.getLogger(__name__)


def _field_name(loc: tuple) -> str:
    # Drop the "body" / "query" / "path" prefix FastAPI adds
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts) or "body"


async def domain_error_handler(request: Request, exc: PureTomeError) -> JSONResponse:
    content = {"message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(tuple(err.get("loc", ()))), err.get("msg", "Invalid value"))

    joined = ". ".join(f"{field}: {msg}" for field, msg in errors.items())
    return JSONResponse(
        status_code=400,
        content={"message": f"Validation failed: {joined}", "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Server Error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PureTomeError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
