"""In-process registry of machine sessions keyed by X-Machine-Id.

Sessions live for the lifetime of the process; credits are never persisted.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable

from reelmachine.config import MachineConfig
from reelmachine.config_hash import get_config_hash
from reelmachine.config_loader import default_machine_config
from reelmachine.logic.machine import Machine, MachineListener
from reelmachine.logic.models import Grid, WinEvent, grid_to_names
from reelmachine.logic.rng import ProductionRNG, RNGBase
from reelmachine.protocol import EventType


logger = logging.getLogger(__name__)


class RecordingListener(MachineListener):
    """Buffers machine callbacks until the host drains them into a response."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def on_grid(self, grid: Grid) -> None:
        self.events.append({"type": EventType.GRID.value, "grid": grid_to_names(grid)})

    def on_win(self, win: WinEvent) -> None:
        self.events.append({
            "type": EventType.WIN.value,
            "pattern": win.pattern.value,
            "symbol": win.symbol.name.lower(),
            "matchCount": win.match_count,
            "cells": [list(cell) for cell in win.cells],
            "amount": win.amount,
            "tier": win.tier.value,
        })

    def on_credits_changed(self, total: int) -> None:
        self.events.append({"type": EventType.CREDITS_CHANGED.value, "total": total})

    def on_ready_changed(self, ready: bool) -> None:
        self.events.append({"type": EventType.READY_CHANGED.value, "ready": ready})

    def drain(self) -> list[dict[str, Any]]:
        """Return and forget everything recorded so far."""
        events, self.events = self.events, []
        return events


@dataclass
class MachineSession:
    """One independent machine plus its host-side listener."""

    machine_id: str
    machine: Machine
    listener: RecordingListener
    config_hash: str


class MachineRegistry:
    """Creates machines on first use and keeps them by id."""

    def __init__(
        self,
        config_factory: Callable[[], MachineConfig] = default_machine_config,
        rng_factory: Callable[[], RNGBase] = ProductionRNG,
    ):
        self._config_factory = config_factory
        self._rng_factory = rng_factory
        self._config: MachineConfig | None = None
        self._config_hash: str | None = None
        self._sessions: dict[str, MachineSession] = {}

    @property
    def config(self) -> MachineConfig:
        """Machine configuration, loaded once on first access."""
        if self._config is None:
            self._config = self._config_factory()
            logger.info("Machine config loaded (%d rollers)", self._config.roller_count)
        return self._config

    @property
    def config_hash(self) -> str:
        if self._config_hash is None:
            self._config_hash = get_config_hash(self.config)
        return self._config_hash

    def get_or_create(self, machine_id: str) -> MachineSession:
        session = self._sessions.get(machine_id)
        if session is None:
            listener = RecordingListener()
            machine = Machine(
                config=self.config,
                rng=self._rng_factory(),
                listener=listener,
            )
            session = MachineSession(
                machine_id=machine_id,
                machine=machine,
                listener=listener,
                config_hash=self.config_hash,
            )
            self._sessions[machine_id] = session
            logger.info("Machine %s created", machine_id)
        return session

    def get(self, machine_id: str) -> MachineSession | None:
        return self._sessions.get(machine_id)

    def configure(
        self,
        config_factory: Callable[[], MachineConfig] | None = None,
        rng_factory: Callable[[], RNGBase] | None = None,
    ) -> None:
        """Swap factories and drop every session (useful for testing)."""
        if config_factory is not None:
            self._config_factory = config_factory
        if rng_factory is not None:
            self._rng_factory = rng_factory
        self.clear()

    def clear(self) -> None:
        self._sessions.clear()
        self._config = None
        self._config_hash = None


# Global instance
registry = MachineRegistry()
