"""Pytest fixtures for backend tests."""
import itertools
from typing import Any, Generator, Iterable

import pytest
from fastapi.testclient import TestClient

from reelmachine.config import MachineConfig
from reelmachine.config_loader import default_machine_config
from reelmachine.logic.rng import ProductionRNG, RNGBase
from reelmachine.main import app
from reelmachine.registry import RecordingListener, registry
from reelmachine.telemetry import LoggingTelemetrySink, telemetry_service


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (run full headless simulations)"
    )


class FixedRNG(RNGBase):
    """Replays a fixed sequence of draws, cycling when exhausted."""

    def __init__(self, values: Iterable[float] = (0.5,)):
        self._values = itertools.cycle(list(values))

    def random(self) -> float:
        return next(self._values)


class RecordingSink:
    """Telemetry sink that keeps every emitted event."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def make_config(**overrides: Any) -> MachineConfig:
    """Fast deterministic MachineConfig; every field can be overridden."""
    data: dict[str, Any] = {
        "start_offset": 0.1,
        "spin_time_min": 0.5,
        "spin_time_max": 0.5,
        "settle_margin": 1.5,
        "win_display_duration": 0.0,
    }
    data.update(overrides)
    return MachineConfig.model_validate(data)


def bell_strips(rollers: int = 4) -> list[list[str]]:
    """Strips that can only ever show bells."""
    return [["bell", "bell", "bell"] for _ in range(rollers)]


@pytest.fixture
def default_config() -> MachineConfig:
    return make_config()


@pytest.fixture
def bell_config() -> MachineConfig:
    """All-bell machine, wins presented without holds."""
    return make_config(strips=bell_strips())


@pytest.fixture
def paced_bell_config() -> MachineConfig:
    """All-bell machine with a 1.5s hold after each win."""
    return make_config(strips=bell_strips(), win_display_duration=1.5)


@pytest.fixture
def fixed_rng() -> FixedRNG:
    return FixedRNG([0.5])


@pytest.fixture
def recording_listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def recording_sink() -> Generator[RecordingSink, None, None]:
    """Route the global telemetry service into a RecordingSink."""
    sink = RecordingSink()
    telemetry_service.set_sink(sink)
    yield sink
    telemetry_service.set_sink(LoggingTelemetrySink())


@pytest.fixture
def client(bell_config: MachineConfig) -> Generator[TestClient, None, None]:
    """TestClient serving all-bell machines with a fixed spin duration."""
    registry.configure(config_factory=lambda: bell_config, rng_factory=FixedRNG)

    with TestClient(app) as test_client:
        yield test_client

    registry.configure(config_factory=default_machine_config, rng_factory=ProductionRNG)


@pytest.fixture
def test_client() -> TestClient:
    """Create basic TestClient (for tests that don't need a configured registry)."""
    return TestClient(app)
