"""Roller motion model.

A roller is a cyclic strip of symbols scrolled downwards by a one-dimensional
motion model with four phases:

    Idle -> Accelerating -> Decelerating -> Bouncing -> Idle

Geometry: slot ``i`` of the strip sits at depth
``(i * pitch + scroll_position) mod length`` below the top scan line, and the
three scan lines sit at depths ``0``, ``pitch`` and ``2 * pitch``.
"""
import logging
from dataclasses import dataclass
from typing import ClassVar, Sequence

from reelmachine.config import MIN_STRIP_LENGTH, PhysicsConfig
from reelmachine.errors import ConfigurationError, InvalidOperation
from reelmachine.logic.models import ResultWindow, Row, Symbol
from reelmachine.logic.scheduler import ScheduledAction, Scheduler


logger = logging.getLogger(__name__)

# Overshoot below this is treated as already aligned (float accumulation)
ALIGN_EPSILON = 1e-6


@dataclass(frozen=True)
class Idle:
    """Stopped. ``window`` is None from activation until the roller settles again."""

    window: ResultWindow | None
    name: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Accelerating:
    """Speeding up until ``remaining`` spin time runs out."""

    remaining: float
    name: ClassVar[str] = "accelerating"


@dataclass(frozen=True)
class Decelerating:
    name: ClassVar[str] = "decelerating"


@dataclass(frozen=True)
class Bouncing:
    """Moving back against the spin direction onto the nearest aligned position."""

    name: ClassVar[str] = "bouncing"


RollerPhase = Idle | Accelerating | Decelerating | Bouncing


class Roller:
    """
    One reel of the machine.

    The only externally readable result is ``window``, which exists only on
    the Idle phase of a settled roller.
    """

    def __init__(
        self,
        strip: Sequence[Symbol],
        physics: PhysicsConfig,
        scheduler: Scheduler,
        index: int = 0,
    ):
        if len(strip) < MIN_STRIP_LENGTH:
            raise ConfigurationError(
                f"Roller {index} has {len(strip)} symbols, needs at least {MIN_STRIP_LENGTH}"
            )
        symbols = tuple(Symbol.parse(s) for s in strip)
        if Symbol.NONE in symbols:
            raise ConfigurationError(f"Roller {index} strip contains the NONE symbol")

        self.index = index
        self.strip = symbols
        self.physics = physics
        self.pitch = physics.pitch
        self.length = self.pitch * len(symbols)

        self._scheduler = scheduler
        self._pending_start: ScheduledAction | None = None

        self.velocity = 0.0
        self.scroll_position = 0.0
        self.phase: RollerPhase = Idle(window=self._read_window())

    @property
    def window(self) -> ResultWindow | None:
        """Settled (top, middle, bottom) symbols, None while in motion."""
        if isinstance(self.phase, Idle):
            return self.phase.window
        return None

    @property
    def settled(self) -> bool:
        return self.window is not None

    @property
    def phase_name(self) -> str:
        return self.phase.name

    def activate(self, duration: float, start_delay: float = 0.0) -> None:
        """
        Start a spin of ``duration`` after ``start_delay``.

        Args:
            duration: Accelerating time. Zero or less skips acceleration and
                goes straight to the stop sequence.
            start_delay: Deferral of the start; negative values mean now.

        Raises:
            InvalidOperation: If the roller has not settled from a previous spin.
        """
        if not self.settled:
            raise InvalidOperation(f"Roller {self.index} is already spinning")

        self.phase = Idle(window=None)
        start_delay = max(start_delay, 0.0)
        if start_delay > 0:
            self._pending_start = self._scheduler.call_later(start_delay, self._start, duration)
        else:
            self._start(duration)

    def _start(self, duration: float) -> None:
        self._pending_start = None
        if duration > 0:
            self.phase = Accelerating(remaining=duration)
        else:
            self.phase = Decelerating()
        logger.debug("Roller %d started (duration=%.3f)", self.index, duration)

    def tick(self, dt: float) -> None:
        """Advance the motion model by ``dt`` seconds."""
        if dt < 0:
            raise ValueError(f"Elapsed time must be non-negative, got {dt}")
        self.phase = self._step(self.phase, dt)

    def _step(self, phase: RollerPhase, dt: float) -> RollerPhase:
        """Single transition function: current phase and elapsed time to next phase."""
        frames = dt * self.physics.reference_fps

        if isinstance(phase, Accelerating):
            self.velocity = min(
                self.velocity + self.physics.acceleration * frames,
                self.physics.max_velocity,
            )
            self._scroll(self.velocity * dt)
            remaining = phase.remaining - dt
            if remaining <= 0:
                return Decelerating()
            return Accelerating(remaining=remaining)

        if isinstance(phase, Decelerating):
            self.velocity = max(self.velocity - self.physics.deceleration * frames, 0.0)
            if self.velocity < self.physics.max_velocity * self.physics.bounce_threshold_ratio:
                self.velocity = 0.0
                return Bouncing()
            self._scroll(self.velocity * dt)
            return phase

        if isinstance(phase, Bouncing):
            gap = self._overshoot()
            step = self.physics.bounce_velocity * dt
            if step < gap:
                self._scroll(-step)
                return phase
            # Leading symbol reaches its line: stop exactly on it
            self._scroll(-gap)
            return self._settle()

        return phase

    def force_settle(self) -> None:
        """
        Stop immediately on the last aligned position and go Idle.

        Cancels a pending delayed start. No-op for a settled roller.
        """
        if self._pending_start is not None:
            self._pending_start.cancel()
            self._pending_start = None
        if self.settled:
            return
        logger.warning(
            "Roller %d force-settled from phase %s", self.index, self.phase_name
        )
        self._scroll(-self._overshoot())
        self.phase = self._settle()

    def _settle(self) -> Idle:
        self.velocity = 0.0
        window = self._read_window()
        logger.debug(
            "Roller %d settled: %s",
            self.index,
            [symbol.name.lower() for symbol in window],
        )
        return Idle(window=window)

    def _scroll(self, distance: float) -> None:
        self.scroll_position = (self.scroll_position + distance) % self.length

    def _overshoot(self) -> float:
        """Distance the strip has travelled past the last aligned position."""
        gap = self.scroll_position % self.pitch
        if gap < ALIGN_EPSILON or self.pitch - gap < ALIGN_EPSILON:
            return 0.0
        return gap

    def _depth(self, slot: int) -> float:
        return (slot * self.pitch + self.scroll_position) % self.length

    def _line_distance(self, depth: float, line_depth: float) -> float:
        distance = abs(depth - line_depth) % self.length
        return min(distance, self.length - distance)

    def _read_window(self) -> ResultWindow:
        """Snap each scan line to the slot closest to it (cyclic distance)."""
        symbols = []
        for row in Row:
            line_depth = row.value * self.pitch
            nearest = min(
                range(len(self.strip)),
                key=lambda slot: self._line_distance(self._depth(slot), line_depth),
            )
            symbols.append(self.strip[nearest])
        return ResultWindow(*symbols)
