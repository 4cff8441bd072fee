"""
Middleware for request tracking, last-resort error rendering and response headers.

Application and HTTP exceptions raised by routes are rendered by the
exception handlers registered in app.py; what reaches ErrorHandlingMiddleware
is whatever those handlers do not cover.
"""
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from pydantic import ValidationError

from common.logging import (
    RequestContextLogger,
    get_logger,
    log_error,
    log_performance,
    log_security_event,
)
from common.responses import create_error_response, create_validation_error_response
from config.cors import CORS_HEADERS

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_REQUIRED",
    403: "ACCESS_DENIED",
    404: "RESOURCE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "RESOURCE_CONFLICT",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}

logger = get_logger("middleware")


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to the request and echoes it as X-Request-ID."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()
        with RequestContextLogger(request_id=request_id):
            response = await call_next(request)
            log_performance(
                operation=f"{request.method} {request.url.path}",
                duration_ms=(time.perf_counter() - start) * 1000,
                success=response.status_code < 400,
                status_code=response.status_code,
            )
        response.headers["X-Request-ID"] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escaped every handler into the error envelope."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except ValidationError as e:
            # A model built from data we produced (provider answer, DB row) did not validate
            logger.warning(
                "Internal model validation failed",
                extra={"error_count": e.error_count(), "path": request.url.path, "method": request.method}
            )
            return create_validation_error_response(
                validation_errors=[
                    {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ],
                message="Response data failed validation",
                status_code=500
            )
        except Exception as e:
            log_error(e, context={"path": request.url.path, "method": request.method})
            return create_error_response(
                error_code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred",
                status_code=500
            )


class SecurityMiddleware(BaseHTTPMiddleware):
    """Logs suspicious request paths and attaches security headers."""

    SUSPICIOUS_PATH_PATTERNS = ("../", "..\\", "<script", "javascript:", "%2e%2e")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = str(request.url.path).lower()
        pattern = next((p for p in self.SUSPICIOUS_PATH_PATTERNS if p in path), None)
        if pattern:
            log_security_event(
                event_type="SUSPICIOUS_PATH",
                ip_address=request.client.host if request.client else None,
                details={"path": request.url.path, "pattern": pattern}
            )

        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if not path.startswith(("/docs", "/redoc", "/openapi")):
            response.headers.setdefault("X-Frame-Options", "DENY")
        return response


class PermissiveCorsHeadersMiddleware(BaseHTTPMiddleware):
    """Stamps the wildcard CORS headers on every response, error envelopes included.

    CORSMiddleware only adds them when the request carries an Origin header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for header, value in CORS_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


def http_error_response(status_code: int, detail, headers=None) -> JSONResponse:
    """Envelope for framework-raised HTTP errors (unknown route, wrong method)."""
    return create_error_response(
        error_code=HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR"),
        message=str(detail),
        status_code=status_code,
        headers=headers
    )


def setup_middleware(app) -> None:
    """Register middleware; the last one added runs first."""
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(PermissiveCorsHeadersMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(RequestTrackingMiddleware)
