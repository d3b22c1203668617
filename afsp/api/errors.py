"""
Exception handlers for the FastAPI application.

Every failure leaves the API as a flat JSON object, {"error": "<message>"},
with a conventional status code. Clients show the message as-is, so
messages are written for people.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..infrastructure.identity.client import IdentityError
from ..infrastructure.kv.client import KeyValueStoreError
from ..infrastructure.storage.client import StorageError

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content: dict[str, Any] = {"error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """HTTPException raised by routes and dependencies."""
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return create_error_response(
        status_code=exc.status_code,
        message=message,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Malformed request bodies and parameters.

    These are reported as 400 rather than FastAPI's default 422 so every
    input problem has the same status.
    """
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append({"field": location, "message": error.get("msg", "")})

    summary = "; ".join(
        f"{d['field']}: {d['message']}" if d["field"] else d["message"]
        for d in details
    )
    return create_error_response(
        status_code=400,
        message=f"Invalid request: {summary}" if summary else "Invalid request",
        details=details,
    )


async def upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Identity, store and storage failures that routes didn't handle themselves."""
    messages = {
        IdentityError: "Identity service error",
        KeyValueStoreError: "Data store error",
        StorageError: "Storage error",
    }
    message = next(
        (text for cls, text in messages.items() if isinstance(exc, cls)),
        "Upstream service error",
    )
    logger.error(
        "Upstream service failure",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
    )
    return create_error_response(status_code=500, message=message)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler.

    Prevents stack traces from leaking to clients. The full error is
    logged server-side; the client gets a generic message.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
        exc_info=exc,
    )
    return create_error_response(status_code=500, message="Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IdentityError, upstream_error_handler)
    app.add_exception_handler(KeyValueStoreError, upstream_error_handler)
    app.add_exception_handler(StorageError, upstream_error_handler)
    # Must be last: catches everything else
    app.add_exception_handler(Exception, generic_exception_handler)
