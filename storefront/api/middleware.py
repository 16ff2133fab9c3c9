"""API middleware for the storefront.

Provides:
- Request ID correlation
- Bearer token authentication with token renewal
- Error handling
"""

import re
import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.api.responses import domain_error_response, error, fail
from storefront.domain.exceptions import AuthenticationError, DomainError
from storefront.infrastructure.config import settings
from storefront.infrastructure.security import create_access_token, decode_access_token

logger = structlog.get_logger()


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request with correlation ID.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with request ID header.
        """
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# Authentication Middleware
# ============================================================================


# Open paths regardless of method
PUBLIC_PATHS = {
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/auth/login",
    "/auth/register",
}

# Reads that still need a token
PROTECTED_READS = (
    re.compile(r"^/users(/.*)?$"),
    re.compile(r"^/products/[^/]+$"),  # includes /products/duplicates
)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

RENEWED_TOKEN_HEADER = "X-Renewed-Token"


def requires_auth(method: str, path: str) -> bool:
    """Decide whether a request needs a bearer token.

    Args:
        method: HTTP method.
        path: Request path without trailing slash.

    Returns:
        True for writes and for the protected reads.
    """
    if path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc"):
        return False
    if method.upper() == "OPTIONS":
        return False
    if method.upper() not in SAFE_METHODS:
        return True
    return any(pattern.match(path) for pattern in PROTECTED_READS)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware for bearer token authentication.

    Validates ``Authorization: Bearer <token>`` on protected requests,
    stores the token claims on ``request.state.user`` and, when enabled,
    returns a freshly issued token in ``X-Renewed-Token``.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Validate the token for protected endpoints.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or 401 error.
        """
        path = request.url.path.rstrip("/") or "/"
        if not requires_auth(request.method, path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            logger.warning("Missing authorization header", path=path, method=request.method)
            return fail(
                "Token not provided. Use the header Authorization: Bearer <token>",
                status_code=status.HTTP_401_UNAUTHORIZED,
                headers={"WWW-Authenticate": "Bearer"},
            )

        parts = auth_header.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
            logger.warning("Invalid authorization format", path=path, method=request.method)
            return fail(
                "Invalid Authorization header format. Use 'Bearer <token>'",
                status_code=status.HTTP_401_UNAUTHORIZED,
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            claims = decode_access_token(parts[1].strip())
        except AuthenticationError as e:
            logger.warning("Token rejected", path=path, method=request.method, reason=e.message)
            return domain_error_response(request, e)

        request.state.user = claims
        structlog.contextvars.bind_contextvars(user_id=claims.get("sub"))
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("user_id")

        if settings.renew_tokens:
            response.headers[RENEWED_TOKEN_HEADER] = create_access_token(
                int(claims["sub"]), claims.get("email", "")
            )
        return response


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling.

    Catches exceptions that escaped the route handlers and returns a
    JSend envelope instead of a bare 500.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Handle errors uniformly.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or error response.
        """
        try:
            return await call_next(request)
        except DomainError as e:
            return domain_error_response(request, e)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return error("Internal server error")


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
    """
    # Error handling (closest to the routes)
    app.add_middleware(ErrorHandlerMiddleware)

    # Bearer token authentication
    app.add_middleware(AuthMiddleware)

    # Request ID correlation (outermost, so every log line carries the id)
    app.add_middleware(RequestIdMiddleware)
