"""Uniform JSON error bodies for validation failures and unexpected errors."""
from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import get_settings

logger = logging.getLogger("hostelsync.errors")

_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def _field_name(loc: Sequence[Any]) -> str:
    parts = [str(part) for part in loc if part not in _LOCATIONS]
    return ".".join(parts) or "request"


def field_errors(errors: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """Collapse pydantic error entries into ``{field: message}``, first message wins."""

    collected: Dict[str, str] = {}
    for error in errors:
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        collected.setdefault(_field_name(error.get("loc", ())), message)
    return collected


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": field_errors(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body: Dict[str, Any] = {"detail": "Internal server error"}
    if get_settings().is_development:
        body["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
