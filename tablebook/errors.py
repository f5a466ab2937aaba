"""
Problem-document error envelope.

Every error leaves the API as ``{type, title, status, detail, instance}``.
Domain errors add their stable ``code`` (and a matching ``type`` URN) plus
any ``errors`` details, so clients branch on codes instead of messages.
"""

import logging
import re
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

PROBLEM_TYPE_PREFIX = "urn:tablebook:problem:"

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def problem_type(code: str) -> str:
    """``INSUFFICIENT_BALANCE`` and ``NotFoundException`` become URN slugs."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", code)
    slug = words.lower().replace("_", "-").removesuffix("-exception")
    return PROBLEM_TYPE_PREFIX + slug


def problem_response(
    request: Request,
    status_code: int,
    detail: Optional[str],
    *,
    code: Optional[str] = None,
    errors: Any = None,
    title: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": problem_type(code) if code else "about:blank",
        "title": title or _TITLES.get(status_code, "Error"),
        "status": status_code,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status_code, headers=headers)


def _detail_text(detail: Any) -> Optional[str]:
    if detail is None or isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail")
        return message if isinstance(message, str) else None
    return str(detail)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Domain error on %s: %s (%s)", request.url.path, exc.message, exc.code)
        return problem_response(
            request, exc.status_code, exc.message, code=exc.code, errors=exc.details
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return problem_response(
            request, exc.status_code, _detail_text(exc.detail), headers=exc.headers
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return problem_response(
            request, exc.status_code, _detail_text(exc.detail), headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return problem_response(
            request,
            422,
            "Request validation failed",
            code="REQUEST_VALIDATION_ERROR",
            errors=exc.errors(),
            title="Validation Error",
        )
