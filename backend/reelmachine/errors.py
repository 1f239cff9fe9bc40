"""Error codes and exceptions for the machine core and its HTTP host."""
from enum import Enum

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reelmachine.config import settings


class ErrorCode(str, Enum):
    """Error codes surfaced by the core and the host."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_READY = "NOT_READY"
    INVALID_OPERATION = "INVALID_OPERATION"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.NOT_READY: 409,
    ErrorCode.INVALID_OPERATION: 409,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Whether the client may retry the same request later
ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.INVALID_REQUEST: False,
    ErrorCode.NOT_READY: True,
    ErrorCode.INVALID_OPERATION: True,
    ErrorCode.CONFIGURATION_ERROR: False,
    ErrorCode.INTERNAL_ERROR: True,
}


class ErrorBody(BaseModel):
    """Error body shape."""

    code: str
    message: str
    recoverable: bool


class ErrorResponse(BaseModel):
    """Full error response."""

    protocolVersion: str = settings.protocol_version
    error: ErrorBody


class GameError(Exception):
    """Base machine error that maps to a protocol error response."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or f"Error: {code.value}"
        self.status_code = ERROR_HTTP_STATUS[code]
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """Convert to a protocol JSONResponse."""
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(
                error=ErrorBody(
                    code=self.code.value,
                    message=self.message,
                    recoverable=self.recoverable,
                )
            ).model_dump(),
        )


class ConfigurationError(GameError):
    """Invalid static configuration. Fatal: the machine must not start."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message)


class InvalidOperation(GameError):
    """
    Request that the current state does not allow (e.g. spinning while busy).

    Never leaves the machine in a changed state.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_OPERATION):
        super().__init__(code, message)
