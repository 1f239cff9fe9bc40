"""Protocol models for the headless machine host."""
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from reelmachine.config import MachineConfig, settings


class EventType(str, Enum):
    """Listener events relayed to the presentation client."""

    GRID = "grid"
    WIN = "win"
    CREDITS_CHANGED = "creditsChanged"
    READY_CHANGED = "readyChanged"


# === Request Models ===


class AdvanceRequest(BaseModel):
    """POST /advance request body."""

    deltaTime: float = Field(..., description="Elapsed seconds since the previous advance")


# === Response Models ===


class Configuration(BaseModel):
    """Configuration object in /init response."""

    rollers: int
    stripLengths: list[int]
    rewards: dict[str, list[int]]
    startOffset: float
    spinTimeMin: float
    spinTimeMax: float
    settleMargin: float
    winDisplayDuration: float
    zigzagPatternsEnabled: bool

    @classmethod
    def from_config(cls, config: MachineConfig) -> "Configuration":
        return cls(
            rollers=config.roller_count,
            stripLengths=[len(strip) for strip in config.strips],
            rewards={
                symbol.name.lower(): list(amounts) for symbol, amounts in config.rewards.items()
            },
            startOffset=config.start_offset,
            spinTimeMin=config.spin_time_min,
            spinTimeMax=config.spin_time_max,
            settleMargin=config.settle_margin,
            winDisplayDuration=config.win_display_duration,
            zigzagPatternsEnabled=config.zigzag_patterns_enabled,
        )


class MachineStateView(BaseModel):
    """Machine state as seen by the client."""

    ready: bool
    totalCredits: int
    spinsCompleted: int
    phases: list[str]
    grid: list[list[str]] | None = None


class InitResponse(BaseModel):
    """GET /init response."""

    protocolVersion: str = settings.protocol_version
    configHash: str
    configuration: Configuration
    state: MachineStateView


class StateResponse(BaseModel):
    """GET /state, POST /cancel and POST /reset response."""

    protocolVersion: str = settings.protocol_version
    state: MachineStateView


class SpinResponse(BaseModel):
    """POST /spin response."""

    protocolVersion: str = settings.protocol_version
    accepted: bool = True
    spinTime: float
    state: MachineStateView


class AdvanceResponse(BaseModel):
    """POST /advance response."""

    protocolVersion: str = settings.protocol_version
    elapsed: float
    events: list[dict[str, Any]] = Field(default_factory=list)
    state: MachineStateView
