"""Headless Reel Machine host (FastAPI)."""
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from reelmachine.config import settings
from reelmachine.errors import ErrorCode, GameError
from reelmachine.logging_setup import configure_logging
from reelmachine.logic.machine import Machine
from reelmachine.middleware import ErrorHandlerMiddleware, MachineIdMiddleware
from reelmachine.protocol import (
    AdvanceRequest,
    AdvanceResponse,
    Configuration,
    EventType,
    InitResponse,
    MachineStateView,
    SpinResponse,
    StateResponse,
)
from reelmachine.registry import MachineSession, registry
from reelmachine.telemetry import (
    telemetry_service,
    SpinCompletedEvent,
    SpinRejectedEvent,
    SpinStartedEvent,
)
from reelmachine.validators import validate_advance_request


logger = logging.getLogger(__name__)

# Frame-count rounding slack for float division of deltaTime by the tick
FRAME_EPSILON = 1e-9


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and load the machine config before serving."""
    level = "DEBUG" if settings.debug else settings.log_level
    configure_logging(level, json_format=settings.log_json)
    logger.info(
        "Serving machine config %s (%d rollers)",
        registry.config_hash,
        registry.config.roller_count,
    )
    yield


app = FastAPI(
    title="Reel Machine",
    version="0.1.0",
    description="Headless slot machine core: roller motion and pattern evaluation",
    lifespan=lifespan,
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(MachineIdMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies map to INVALID_REQUEST instead of FastAPI's 422."""
    return GameError(ErrorCode.INVALID_REQUEST, str(exc)).to_response()


def _state_view(machine: Machine) -> MachineStateView:
    return MachineStateView(**machine.snapshot())


def _session(request: Request) -> MachineSession:
    return registry.get_or_create(request.state.machine_id)


def _advance_in_frames(machine: Machine, delta_time: float) -> None:
    """Replay one advance as whole host frames plus at most one partial frame."""
    if delta_time == 0:
        machine.advance(0.0)
        return
    tick = settings.tick_seconds
    frames = int(delta_time / tick + FRAME_EPSILON)
    for _ in range(frames):
        machine.advance(tick)
    remainder = delta_time - frames * tick
    if remainder > FRAME_EPSILON:
        machine.advance(remainder)


def _emit_completions(session: MachineSession, events: list[dict[str, Any]]) -> None:
    """Emit spin_completed once per readyChanged(true) in a batch of events."""
    machine = session.machine
    wins = 0
    for event in events:
        if event["type"] == EventType.WIN.value:
            wins += 1
        elif event["type"] == EventType.READY_CHANGED.value and event["ready"]:
            telemetry_service.emit_spin_completed(
                SpinCompletedEvent(
                    machine_id=session.machine_id,
                    spin_index=machine.state.spins_completed,
                    grid=machine.snapshot()["grid"] or [],
                    win_count=wins,
                    credits_won=machine.last_spin_credits,
                    total_credits=machine.total_credits,
                    config_hash=session.config_hash,
                )
            )
            wins = 0


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/init")
async def init(request: Request) -> dict:
    """
    GET /init.

    Returns configuration summary, config hash and the machine's state,
    creating the machine on first contact.
    """
    session = _session(request)
    response = InitResponse(
        configHash=session.config_hash,
        configuration=Configuration.from_config(registry.config),
        state=_state_view(session.machine),
    )
    return response.model_dump()


@app.get("/state")
async def state(request: Request) -> dict:
    """GET /state."""
    session = _session(request)
    return StateResponse(state=_state_view(session.machine)).model_dump()


@app.post("/spin")
async def spin(request: Request) -> dict:
    """
    POST /spin (requestSpin).

    Rejected with NOT_READY (409) while the previous spin is in flight; a
    rejected request leaves the machine untouched.
    """
    session = _session(request)
    machine = session.machine

    try:
        spin_time = machine.spin()
    except GameError as e:
        if e.code == ErrorCode.NOT_READY:
            telemetry_service.emit_spin_rejected(
                SpinRejectedEvent(machine_id=session.machine_id, reason=e.code.value)
            )
        raise

    # readyChanged(false) is implied by the response itself
    session.listener.drain()
    telemetry_service.emit_spin_started(
        SpinStartedEvent(
            machine_id=session.machine_id,
            spin_index=machine.state.spins_completed + 1,
            spin_time=spin_time,
            config_hash=session.config_hash,
        )
    )
    return SpinResponse(spinTime=spin_time, state=_state_view(machine)).model_dump()


@app.post("/advance")
async def advance(request: Request, body: AdvanceRequest) -> dict:
    """
    POST /advance (tick).

    Drives roller motion and scheduled actions, returning every listener
    event emitted during the step in emission order.
    """
    validate_advance_request(body)
    session = _session(request)

    _advance_in_frames(session.machine, body.deltaTime)

    events = session.listener.drain()
    _emit_completions(session, events)
    return AdvanceResponse(
        elapsed=body.deltaTime,
        events=events,
        state=_state_view(session.machine),
    ).model_dump()


@app.post("/cancel")
async def cancel(request: Request) -> dict:
    """POST /cancel: finish the spin in flight immediately."""
    session = _session(request)
    session.machine.cancel()
    events = session.listener.drain()
    _emit_completions(session, events)
    return StateResponse(state=_state_view(session.machine)).model_dump()


@app.post("/reset")
async def reset(request: Request) -> dict:
    """POST /reset: zero credits and re-arm the machine."""
    session = _session(request)
    session.machine.reset()
    session.listener.drain()
    return StateResponse(state=_state_view(session.machine)).model_dump()
