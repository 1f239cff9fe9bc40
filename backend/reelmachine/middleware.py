"""Middleware for request validation and error handling."""
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from reelmachine.errors import ErrorCode, GameError


logger = logging.getLogger(__name__)


class MachineIdMiddleware(BaseHTTPMiddleware):
    """Validate the X-Machine-Id header."""

    # Paths that require X-Machine-Id
    PROTECTED_PATHS = {"/init", "/spin", "/advance", "/cancel", "/reset", "/state"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.PROTECTED_PATHS:
            machine_id = request.headers.get("X-Machine-Id")
            if not machine_id:
                error = GameError(
                    ErrorCode.INVALID_REQUEST,
                    "Missing required header: X-Machine-Id",
                )
                return error.to_response()
            # Store machine_id in request state for handlers
            request.state.machine_id = machine_id

        return await call_next(request)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert GameError exceptions to protocol-compliant responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except GameError as e:
            return e.to_response()
        except Exception as e:
            logger.exception("Unhandled error on %s", request.url.path)
            error = GameError(ErrorCode.INTERNAL_ERROR, str(e))
            return error.to_response()
