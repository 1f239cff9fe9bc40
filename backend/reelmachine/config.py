"""Application settings and static machine configuration."""
from typing import Any

from pydantic import BaseModel, Field, NonNegativeInt, PositiveFloat, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reelmachine.logic.models import Symbol


# A strip must fill all three scan lines.
MIN_STRIP_LENGTH = 3

# The W and V chains span four rollers.
ZIGZAG_ROLLERS = 4


class Settings(BaseSettings):
    """Host settings, overridable through SLOT_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="SLOT_")

    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Protocol
    protocol_version: str = "1.0"

    # Optional JSON file with a MachineConfig; built-in defaults otherwise
    machine_config_path: str | None = None

    # Host tick subdivision: one /advance call is replayed as frames of at most this length
    tick_seconds: float = Field(default=1.0 / 60.0, gt=0.0)
    max_advance_seconds: float = Field(default=60.0, gt=0.0)


class PhysicsConfig(BaseModel):
    """
    Roller motion constants.

    Velocities are in strip units per second. Acceleration and deceleration
    are applied per reference frame, i.e. scaled by ``dt * reference_fps``.
    """

    max_velocity: PositiveFloat = 2000.0
    acceleration: PositiveFloat = 70.0
    deceleration: PositiveFloat = 40.0
    bounce_velocity: PositiveFloat = 700.0
    # Deceleration hands over to the bounce below max_velocity * ratio
    bounce_threshold_ratio: float = Field(default=1.0 / 3.0, gt=0.0, lt=1.0)
    reference_fps: PositiveFloat = 60.0

    # Strip geometry
    symbol_height: PositiveFloat = 200.0
    symbol_gap: float = Field(default=10.0, ge=0.0)

    @property
    def pitch(self) -> float:
        """Distance between the tops of two neighbouring symbols."""
        return self.symbol_height + self.symbol_gap


DEFAULT_STRIPS: list[list[str]] = [
    ["bell", "cherry", "lemon", "orange", "watermelon", "grapes", "eggplant", "cherry", "lemon"],
    ["lemon", "bell", "grapes", "cherry", "orange", "eggplant", "watermelon", "lemon", "orange"],
    ["cherry", "orange", "bell", "eggplant", "lemon", "watermelon", "grapes", "orange", "cherry"],
    ["orange", "grapes", "lemon", "bell", "cherry", "eggplant", "lemon", "watermelon", "grapes"],
]

# [double, triple, quadruple]
DEFAULT_REWARDS: dict[str, list[int]] = {
    "bell": [10, 30, 100],
    "watermelon": [5, 20, 60],
    "grapes": [4, 15, 50],
    "eggplant": [3, 10, 40],
    "orange": [2, 8, 30],
    "lemon": [1, 5, 20],
    "cherry": [1, 4, 15],
}


class MachineConfig(BaseModel):
    """
    Static machine configuration, loaded once at setup.

    Build it through ``config_loader.build_machine_config`` or
    ``load_machine_config``, which report invalid values as ConfigurationError.
    Constructing it directly raises pydantic's ValidationError instead.
    """

    strips: list[list[Symbol]] = Field(
        default_factory=lambda: [[Symbol.parse(s) for s in strip] for strip in DEFAULT_STRIPS]
    )
    physics: PhysicsConfig = Field(default_factory=PhysicsConfig)
    rewards: dict[Symbol, tuple[NonNegativeInt, NonNegativeInt, NonNegativeInt]] = Field(
        default_factory=lambda: {
            Symbol.parse(name): tuple(amounts) for name, amounts in DEFAULT_REWARDS.items()
        }
    )

    # Timing (seconds)
    start_offset: float = Field(default=0.2, ge=0.0)
    spin_time_min: float = Field(default=2.0, ge=0.0)
    spin_time_max: float = Field(default=4.0, ge=0.0)
    settle_margin: float = Field(default=1.5, ge=0.0)
    win_display_duration: float = Field(default=1.5, ge=0.0)

    zigzag_patterns_enabled: bool = True

    @field_validator("strips", mode="before")
    @classmethod
    def _parse_strips(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [
            [Symbol.parse(s) for s in strip] if isinstance(strip, list) else strip
            for strip in value
        ]

    @field_validator("rewards", mode="before")
    @classmethod
    def _parse_reward_keys(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        parsed = {}
        for key, rewards in value.items():
            # JSON object keys arrive as strings, numeric or named
            if isinstance(key, str) and key.isdigit():
                key = int(key)
            parsed[Symbol.parse(key)] = rewards
        return parsed

    @field_validator("strips")
    @classmethod
    def _check_strips(cls, strips: list[list[Symbol]]) -> list[list[Symbol]]:
        if not strips:
            raise ValueError("At least one roller strip is required")
        for index, strip in enumerate(strips):
            if len(strip) < MIN_STRIP_LENGTH:
                raise ValueError(
                    f"Roller {index} has {len(strip)} symbols, needs at least {MIN_STRIP_LENGTH}"
                )
            if Symbol.NONE in strip:
                raise ValueError(f"Roller {index} strip contains the NONE symbol")
        return strips

    @model_validator(mode="after")
    def _check_consistency(self) -> "MachineConfig":
        if self.spin_time_min > self.spin_time_max:
            raise ValueError(
                f"spin_time_min ({self.spin_time_min}) exceeds spin_time_max ({self.spin_time_max})"
            )
        if self.zigzag_patterns_enabled and len(self.strips) < ZIGZAG_ROLLERS:
            raise ValueError(
                f"W/V patterns need {ZIGZAG_ROLLERS} rollers, configured {len(self.strips)}"
            )
        return self

    @property
    def roller_count(self) -> int:
        return len(self.strips)

    @property
    def evaluation_delay_max(self) -> float:
        """Longest wait between a spin and its evaluation."""
        return (
            self.spin_time_max
            + (self.roller_count - 1) * self.start_offset
            + self.settle_margin
        )


settings = Settings()
