"""Machine orchestration: staggered spin, settle wait, evaluation, credits."""
import logging
from typing import Any, Iterator

from reelmachine.config import MachineConfig
from reelmachine.errors import ErrorCode, InvalidOperation
from reelmachine.logic.models import Grid, MachineState, WinEvent, grid_to_names
from reelmachine.logic.patterns import RewardTable, evaluate_patterns
from reelmachine.logic.rng import ProductionRNG, RNGBase
from reelmachine.logic.roller import Roller
from reelmachine.logic.scheduler import ScheduledAction, Scheduler


logger = logging.getLogger(__name__)


class MachineListener:
    """
    Display collaborator hooks.

    Every method is a no-op; override the ones the presentation layer needs.
    """

    def on_grid(self, grid: Grid) -> None:
        """Final symbol grid of a spin, before any win is presented."""

    def on_win(self, win: WinEvent) -> None:
        """A real win: cells to highlight and the credited amount."""

    def on_credits_changed(self, total: int) -> None:
        """Running credit total after a win or a reset."""

    def on_ready_changed(self, ready: bool) -> None:
        """Spin input enabled (True) or disabled (False)."""


class Machine:
    """
    Slot machine core.

    Implements:
    - Staggered roller activation with a random spin duration
    - Evaluation after the worst-case settle time (stragglers force-settled)
    - Five-pattern scoring in fixed order, credited win by win
    - Win presentation pacing (``win_display_duration`` hold after each win)
    - Spin gate: ``ready`` is False from spin acceptance until the last hold ends
    """

    def __init__(
        self,
        config: MachineConfig | None = None,
        rng: RNGBase | None = None,
        listener: MachineListener | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config or MachineConfig()
        self.rng = rng or ProductionRNG()
        self.listener = listener or MachineListener()
        self.scheduler = scheduler or Scheduler()
        self.rewards = RewardTable(self.config.rewards)
        self.rollers = [
            Roller(strip, self.config.physics, self.scheduler, index=i)
            for i, strip in enumerate(self.config.strips)
        ]
        self.state = MachineState()
        self.last_grid: Grid | None = None
        self.last_spin_time: float | None = None
        self.last_spin_credits = 0
        self.listener_errors = 0

        self._pending: ScheduledAction | None = None
        self._remaining_wins: Iterator[WinEvent] | None = None

    @property
    def ready(self) -> bool:
        return self.state.ready

    @property
    def total_credits(self) -> int:
        return self.state.total_credits

    def spin(self) -> float:
        """
        Start a spin.

        Returns:
            The drawn spin duration.

        Raises:
            InvalidOperation: NOT_READY while a previous spin is still in flight.
        """
        if not self.state.ready:
            raise InvalidOperation("Machine is not ready: a spin is in progress.", ErrorCode.NOT_READY)

        config = self.config
        spin_time = self.rng.uniform(config.spin_time_min, config.spin_time_max)

        # Left to right, each roller running the full spin_time from its own start
        for i, roller in enumerate(self.rollers):
            roller.activate(spin_time, config.start_offset * i)

        self._set_ready(False)
        self.last_spin_time = spin_time
        self.last_spin_credits = 0

        evaluation_delay = (
            spin_time + (len(self.rollers) - 1) * config.start_offset + config.settle_margin
        )
        self._pending = self.scheduler.call_later(evaluation_delay, self._evaluate)
        logger.info(
            "Spin started: spin_time=%.3f evaluation_in=%.3f", spin_time, evaluation_delay
        )
        return spin_time

    def request_spin(self) -> bool:
        """Input-side spin request. Returns False, with no effect, when not ready."""
        try:
            self.spin()
        except InvalidOperation as e:
            logger.warning("Spin request rejected: %s", e.message)
            return False
        return True

    def advance(self, dt: float) -> None:
        """Host tick: move every roller, then run due scheduled actions."""
        if dt < 0:
            raise ValueError(f"Elapsed time must be non-negative, got {dt}")
        for roller in self.rollers:
            roller.tick(dt)
        self.scheduler.advance(dt)

    def cancel(self) -> bool:
        """
        Finish the spin in flight now.

        Rollers still moving are force-settled, the grid is evaluated and
        remaining wins are presented without holds.

        Returns False when there was nothing to cancel.
        """
        if self.state.ready:
            return False
        logger.info("Spin cancelled")
        self._cancel_pending()
        if self._remaining_wins is None:
            self._evaluate(paced=False)
        else:
            self._present_wins(paced=False)
        return True

    def reset(self) -> None:
        """Explicit reinitialisation: settle everything, zero credits, re-arm."""
        self._cancel_pending()
        self._remaining_wins = None
        for roller in self.rollers:
            roller.force_settle()
        self.state.reset()
        logger.info("Machine reset")
        self._notify("on_credits_changed", self.state.total_credits)
        self._notify("on_ready_changed", True)

    def snapshot(self) -> dict[str, Any]:
        """Read-only view of the machine for hosts and logs."""
        return {
            "ready": self.state.ready,
            "totalCredits": self.state.total_credits,
            "spinsCompleted": self.state.spins_completed,
            "phases": [roller.phase_name for roller in self.rollers],
            "grid": grid_to_names(self.last_grid) if self.last_grid is not None else None,
        }

    def _evaluate(self, paced: bool = True) -> None:
        self._pending = None

        # Settle-margin timeout: nothing may keep the machine busy forever
        for roller in self.rollers:
            if not roller.settled:
                roller.force_settle()

        grid: Grid = tuple(roller.window for roller in self.rollers)
        self.last_grid = grid
        self._notify("on_grid", grid)

        wins = evaluate_patterns(grid, self.rewards, self.config.zigzag_patterns_enabled)
        real_wins = [win for win in wins if win.is_real]
        logger.info(
            "Spin evaluated: grid=%s matches=%d real_wins=%d",
            grid_to_names(grid),
            len(wins),
            len(real_wins),
        )

        self._remaining_wins = iter(real_wins)
        self._present_wins(paced=paced)

    def _present_wins(self, paced: bool = True) -> None:
        """Credit and announce wins in pattern order, holding after each when paced."""
        self._pending = None
        for win in self._remaining_wins:
            self.state.total_credits += win.amount
            self.last_spin_credits += win.amount
            logger.info(
                "Win: pattern=%s symbol=%s count=%d amount=%d total=%d",
                win.pattern.value,
                win.symbol.name.lower(),
                win.match_count,
                win.amount,
                self.state.total_credits,
            )
            self._notify("on_win", win)
            self._notify("on_credits_changed", self.state.total_credits)

            if paced and self.config.win_display_duration > 0:
                self._pending = self.scheduler.call_later(
                    self.config.win_display_duration, self._present_wins
                )
                return

        self._finish_spin()

    def _finish_spin(self) -> None:
        self._remaining_wins = None
        self.state.spins_completed += 1
        logger.info(
            "Spin complete: won=%d total=%d", self.last_spin_credits, self.state.total_credits
        )
        self._set_ready(True)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _set_ready(self, ready: bool) -> None:
        self.state.ready = ready
        self._notify("on_ready_changed", ready)

    def _notify(self, hook: str, *args: Any) -> None:
        """
        Call a listener hook.

        Listener failures are counted and logged; they must not leave the
        machine half-way through a spin.
        """
        try:
            getattr(self.listener, hook)(*args)
        except Exception as e:
            self.listener_errors += 1
            logger.warning(
                "Listener error (count=%d): %s - %s", self.listener_errors, hook, str(e)
            )
