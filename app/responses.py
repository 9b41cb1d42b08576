"""
Uniform response envelope and the exception handlers that produce it.

Every response body has the shape
``{"success": bool, "message": str, "data"?: any, "errors"?: list}``.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core import get_settings
from .errors import APIError, AuthenticationError

logger = logging.getLogger(__name__)


def api_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    errors: Optional[list] = None,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """
    Build a JSON response in the standard envelope.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        errors: Optional itemized errors
        status_code: HTTP status code
        headers: Extra response headers

    Returns:
        JSONResponse with the envelope as body
    """
    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(body), headers=headers
    )


def _field_name(loc: tuple) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    if parts:
        return ".".join(parts)
    return str(loc[-1]) if loc else ""


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.reason)
    headers = (
        {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    )
    return api_response(
        False,
        exc.message,
        data=exc.data,
        errors=exc.errors,
        status_code=exc.status_code,
        headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info("%s %s -> 400 validation (%d errors)", request.method, request.url.path, len(errors))
    return api_response(
        False,
        "Invalid input data",
        errors=errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return api_response(
        False,
        message,
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def _internal_error(exc: Exception) -> JSONResponse:
    settings = get_settings()
    errors = None if settings.is_production else [f"{type(exc).__name__}: {exc}"]
    return api_response(
        False,
        "Internal server error",
        errors=errors,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error during %s %s", request.method, request.url.path)
    return _internal_error(exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error during %s %s", request.method, request.url.path)
    return _internal_error(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to ``app``."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
