"""Request validators for the machine host."""
import math

from reelmachine.config import settings
from reelmachine.errors import ErrorCode, GameError
from reelmachine.protocol import AdvanceRequest


def validate_advance_request(request: AdvanceRequest) -> None:
    """
    Validate an advance step.

    Raises INVALID_REQUEST if deltaTime is negative, not finite, or larger
    than one host may replay in a single call.
    """
    if not math.isfinite(request.deltaTime) or request.deltaTime < 0:
        raise GameError(
            ErrorCode.INVALID_REQUEST,
            f"deltaTime must be a non-negative number, got {request.deltaTime}",
        )
    if request.deltaTime > settings.max_advance_seconds:
        raise GameError(
            ErrorCode.INVALID_REQUEST,
            f"deltaTime {request.deltaTime} exceeds the maximum of "
            f"{settings.max_advance_seconds} seconds per call.",
        )
