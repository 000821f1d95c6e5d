import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTP error whose ``extra`` fields are merged into the response envelope."""

    def __init__(self, status_code: int, message: str, extra: Optional[Dict[str, Any]] = None, headers=None):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.extra = extra or {}


def error_body(message: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if extra:
        body.update(extra)
    return body


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def validation_message(errors) -> str:
    missing = [_field_name(err.get("loc", ())) for err in errors if err.get("type") == "missing"]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    if not errors:
        return "Invalid request"
    first = errors[0]
    msg = str(first.get("msg") or "Invalid request")
    # pydantic prefixes custom validator messages
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    field = _field_name(first.get("loc", ()))
    if first.get("type") == "value_error" or field == "body":
        return msg
    return f"{field}: {msg}"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    extra = getattr(exc, "extra", None)
    if exc.status_code >= 500:
        logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), extra),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(validation_message(exc.errors())),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal Server Error"),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
