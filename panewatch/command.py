"""Command records shared between the UI loop and the per-pane jobs.

A Command is owned by one leaf pane. The UI loop holds it and is the only
writer; jobs talk to it through CommandEvent messages tagged with the pane
key and the job id that produced them.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from .arena import PaneKey
from .display import DisplayType

if TYPE_CHECKING:
    from .scheduler import JobHandle

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 100

# Shortest interval a command can be stepped down to, in seconds
MIN_INTERVAL = 0.1
SUBSECOND_STEP = 0.1
SECOND_STEP = 1.0


class CommandState(Enum):
    """Lifecycle state of a pane's command. Values are written to session files."""
    IDLE = "Idle"
    EXECUTING = "Executing"
    PAUSED = "Paused"
    STOPPED = "Stopped"

    def __str__(self) -> str:
        return self.value.upper()


class CommandControl(Enum):
    """Control signals accepted by a job."""
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    EXECUTE = "execute"
    INTERVAL_INCREASE = "interval_increase"
    INTERVAL_DECREASE = "interval_decrease"
    INTERVAL_SET = "interval_set"


@dataclass(frozen=True)
class ControlSignal:
    """A control plus its payload (only INTERVAL_SET carries one)."""
    control: CommandControl
    interval: float | None = None


class EventKind(Enum):
    STARTED = "started"
    OUTPUT = "output"


@dataclass(frozen=True)
class CommandOutput:
    """Result of one run of a command."""
    text: str
    time: datetime
    exit_code: int | None
    duration: float  # seconds

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "time": self.time.isoformat(),
            "exit_code": self.exit_code,
            "duration": round(self.duration, 6),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandOutput":
        if not isinstance(data, dict):
            raise TypeError(f"History entry must be a mapping, not {type(data).__name__}")
        exit_code = data.get("exit_code")
        return cls(
            text=str(data.get("text", "")),
            time=datetime.fromisoformat(str(data["time"])),
            exit_code=int(exit_code) if exit_code is not None else None,
            duration=float(data.get("duration", 0.0)),
        )


@dataclass(frozen=True)
class CommandEvent:
    """Message from a job to the UI loop."""
    pane_key: PaneKey
    job_id: int
    kind: EventKind
    output: CommandOutput | None = None


def step_interval(interval: float, increase: bool) -> float:
    """Return the next interval one step up or down.

    Steps are 0.1s below one second and whole seconds from there on. The
    result never drops below MIN_INTERVAL.
    """
    if increase:
        step = SUBSECOND_STEP if interval < 1 else SECOND_STEP
        new_interval = interval + step
    else:
        step = SUBSECOND_STEP if interval <= 1 else SECOND_STEP
        new_interval = interval - step
    return max(round(new_interval, 1), MIN_INTERVAL)


def format_interval(seconds: float) -> str:
    """Format an interval for display: '5s', '0.5s'."""
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{seconds:.1f}s"


def serialize_seconds(seconds: float) -> int | float:
    """Plain seconds for session/config files; whole numbers stay integers."""
    if float(seconds).is_integer():
        return int(seconds)
    return round(seconds, 3)


@dataclass
class CommandSerializableState:
    """Everything about a Command that survives a restart."""
    exec: str
    interval: float
    history: list[CommandOutput] = field(default_factory=list)
    state: CommandState = CommandState.IDLE
    display_type: DisplayType = DisplayType.RAW_TEXT

    def to_dict(self) -> dict[str, Any]:
        return {
            "exec": self.exec,
            "interval": serialize_seconds(self.interval),
            "state": self.state.value,
            "display": self.display_type.value,
            "history": [output.to_dict() for output in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandSerializableState":
        """Raises KeyError/ValueError/TypeError on malformed data."""
        if not isinstance(data, dict):
            raise TypeError(f"Command entry must be a mapping, not {type(data).__name__}")
        history = data.get("history") or []
        if not isinstance(history, list):
            raise TypeError("Command history must be a list")
        return cls(
            exec=str(data["exec"]),
            interval=max(float(data["interval"]), MIN_INTERVAL),
            history=[CommandOutput.from_dict(item) for item in history],
            state=CommandState(data.get("state", CommandState.IDLE.value)),
            display_type=DisplayType(data.get("display", DisplayType.RAW_TEXT.value)),
        )


class Command:
    """UI-side record of a pane's command and its running job."""

    def __init__(
        self,
        exec: str,
        interval: float,
        handle: "JobHandle",
        state: CommandState = CommandState.IDLE,
        display_type: DisplayType = DisplayType.RAW_TEXT,
        max_history: int = DEFAULT_MAX_HISTORY,
        history: list[CommandOutput] | None = None,
    ):
        self.exec = exec
        self.interval = interval
        self.state = state
        self.display_type = display_type
        self.handle = handle
        self.history: deque[CommandOutput] = deque(history or [], maxlen=max(max_history, 1))

    @property
    def job_id(self) -> int:
        return self.handle.job_id

    @property
    def last_output(self) -> CommandOutput | None:
        return self.history[-1] if self.history else None

    def record_output(self, output: CommandOutput) -> None:
        """Append to the bounded history, evicting the oldest entry when full."""
        self.history.append(output)

    def apply_event(self, event: CommandEvent) -> CommandOutput | None:
        """Update state and history from a job event.

        Paused and Stopped are authoritative: a run that was already in
        flight still lands in the history but does not change the state.
        Returns the output for OUTPUT events, otherwise None.
        """
        if event.kind is EventKind.STARTED:
            if self.state is CommandState.IDLE:
                self.state = CommandState.EXECUTING
            return None

        if event.output is None:
            return None
        if self.state is CommandState.EXECUTING:
            self.state = CommandState.IDLE
        self.record_output(event.output)
        return event.output

    def send_control(self, signal: ControlSignal) -> bool:
        """Translate a control for the job, send it, and update local state.

        Interval steps are resolved here and sent as INTERVAL_SET so the job
        and the UI always agree on the interval. Local state only changes when
        the job actually accepted the signal, except STOP, which always lands.
        """
        control = signal.control
        if control in (CommandControl.INTERVAL_INCREASE, CommandControl.INTERVAL_DECREASE):
            new_interval = step_interval(
                self.interval, control is CommandControl.INTERVAL_INCREASE
            )
            signal = ControlSignal(CommandControl.INTERVAL_SET, new_interval)
            control = CommandControl.INTERVAL_SET

        if control is CommandControl.STOP:
            self.handle.stop()
            self.state = CommandState.STOPPED
            return True

        if self.state is CommandState.STOPPED:
            logger.warning("Command %r is stopped; ignoring %s", self.exec, control.value)
            return False

        if not self.handle.send(signal):
            return False

        if control is CommandControl.PAUSE:
            self.state = CommandState.PAUSED
        elif control is CommandControl.RESUME:
            self.state = CommandState.IDLE
        elif control is CommandControl.INTERVAL_SET and signal.interval is not None:
            self.interval = max(signal.interval, MIN_INTERVAL)
        return True

    def to_state(self) -> CommandSerializableState:
        return CommandSerializableState(
            exec=self.exec,
            interval=self.interval,
            history=list(self.history),
            state=self.state,
            display_type=self.display_type,
        )

    def __repr__(self) -> str:
        return f"Command(exec={self.exec!r}, interval={self.interval}, state={self.state.value})"
