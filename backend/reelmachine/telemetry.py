"""Spin lifecycle telemetry."""
import logging
from dataclasses import dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Log telemetry event."""
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class SpinStartedEvent:
    """spin_started telemetry event."""

    machine_id: str
    spin_index: int
    spin_time: float
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "machine_id": self.machine_id,
            "spin_index": self.spin_index,
            "spin_time": self.spin_time,
            "config_hash": self.config_hash,
        }


@dataclass
class SpinRejectedEvent:
    """spin_rejected telemetry event."""

    machine_id: str
    reason: str  # "NOT_READY"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "machine_id": self.machine_id,
            "reason": self.reason,
        }


@dataclass
class SpinCompletedEvent:
    """spin_completed telemetry event."""

    machine_id: str
    spin_index: int
    grid: list[list[str]]
    win_count: int
    credits_won: int
    total_credits: int
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "machine_id": self.machine_id,
            "spin_index": self.spin_index,
            "grid": self.grid,
            "win_count": self.win_count,
            "credits_won": self.credits_won,
            "total_credits": self.total_credits,
            "config_hash": self.config_hash,
        }


class TelemetryService:
    """Service for emitting spin telemetry events."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0  # Counter for sink failures

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    @property
    def sink_errors(self) -> int:
        return self._sink_errors

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """
        Emit event with exception safety.

        Sink failures MUST NOT break requests or spins.
        """
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def emit_spin_started(self, event: SpinStartedEvent) -> None:
        self._safe_emit("spin_started", event.to_dict())

    def emit_spin_rejected(self, event: SpinRejectedEvent) -> None:
        self._safe_emit("spin_rejected", event.to_dict())

    def emit_spin_completed(self, event: SpinCompletedEvent) -> None:
        self._safe_emit("spin_completed", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
