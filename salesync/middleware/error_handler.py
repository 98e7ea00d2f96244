"""
Global Error Handler Middleware
Maps sales sync failures to HTTP responses and catches everything else
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from salesync.services.sync.errors import (
    LightspeedAPIError,
    NotConnectedError,
    OAuthStateError,
    SalesSyncError,
    SyncCancelledError,
    SyncInProgressError,
    TokenExchangeError,
    TokenRefreshError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES = [
    (NotConnectedError, 404),
    (SyncInProgressError, 409),
    (UnauthorizedError, 401),
    (TokenRefreshError, 502),
    (TokenExchangeError, 400),
    (OAuthStateError, 400),
    (LightspeedAPIError, 502),
    (SyncCancelledError, 499),
]


def status_code_for(exc: SalesSyncError) -> int:
    for error_cls, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_cls):
            return status_code
    return 500


async def sales_sync_error_handler(request: Request, exc: SalesSyncError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SalesSyncError, sales_sync_error_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handler middleware.
    Catches all unhandled exceptions and returns JSON error responses.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            logger.error(
                f"Unhandled exception during request",
                exc_info=True,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "client_host": request.client.host if request.client else None
                }
            )

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "error_type": type(exc).__name__,
                    "path": request.url.path
                }
            )
