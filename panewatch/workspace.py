"""The UI loop's model: pane tree, command jobs and the app-control queue.

Workspace owns the PaneManager and the Scheduler and is only touched from
the UI thread. The Textual app translates key presses into calls here and
redraws from the state exposed here; nothing in this module knows about
Textual.
"""

import logging
import queue
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .arena import PaneKey
from .command import Command, CommandControl, CommandEvent, CommandOutput, ControlSignal
from .config import AppConfig
from .display import DisplayType
from .panes import Direction, Orientation, PaneManager, Rect
from .scheduler import Scheduler
from . import session

logger = logging.getLogger(__name__)

APP_CONTROL_QUEUE_SIZE = 10


class AppControlKind(Enum):
    SET_COMMAND = "set_command"
    SEND_CONTROL = "send_control"


@dataclass(frozen=True)
class AppControl:
    """A request queued for the UI loop to apply on its next pass."""
    kind: AppControlKind
    pane_key: PaneKey
    exec: str | None = None
    signal: ControlSignal | None = None


@dataclass(frozen=True)
class OutputNotice:
    """A completed run, as seen by the UI loop."""
    pane_key: PaneKey
    output: CommandOutput
    changed: bool  # output text differs from the pane's previous run


class Workspace:
    """Single owner of the pane tree and every pane's command."""

    def __init__(self, config: AppConfig, scheduler: Scheduler | None = None):
        self.config = config
        self.panes = PaneManager()
        self.scheduler = scheduler or Scheduler(max_history=config.max_history)
        self.controls: queue.Queue = queue.Queue(maxsize=APP_CONTROL_QUEUE_SIZE)
        # Last known size of the pane area; set by the UI on resize
        self.area = Rect(0, 0, 80, 24)

    @property
    def active(self) -> PaneKey:
        return self.panes.active

    def command_for(self, pane_key: PaneKey) -> Command | None:
        return self.scheduler.get(pane_key)

    @property
    def active_command(self) -> Command | None:
        return self.scheduler.get(self.panes.active)

    # ------------------------------------------------------------------
    # Pane tree
    # ------------------------------------------------------------------

    def split(self, orientation: Orientation) -> bool:
        return self.panes.split(orientation)

    def kill(self) -> bool:
        """Kill the active pane and stop its job."""
        killed = self.panes.kill_active()
        if killed is None:
            return False
        self.scheduler.remove(killed)
        return True

    def cycle(self) -> bool:
        return self.panes.cycle()

    def resize(self, direction: Direction, amount: int = 1) -> bool:
        return self.panes.resize(direction, amount)

    def navigate(self, direction: Direction) -> bool:
        return self.panes.navigate(direction, self.area)

    def bounds(self) -> dict[PaneKey, Rect]:
        return self.panes.bounds(self.area)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_command(self, pane_key: PaneKey, exec: str, interval: float | None = None) -> bool:
        """Start ``exec`` in a pane, replacing what ran there before."""
        exec = exec.strip()
        if not exec:
            return False
        if not self.panes.is_leaf(pane_key):
            logger.warning("Cannot set command on pane %r: not a live leaf", pane_key)
            return False
        existing = self.scheduler.get(pane_key)
        display_type = existing.display_type if existing is not None else self.config.display
        self.scheduler.set_command(
            pane_key,
            exec,
            interval if interval is not None else self.config.interval,
            display_type=display_type,
        )
        return True

    def send_control(self, pane_key: PaneKey, signal: ControlSignal | CommandControl) -> bool:
        return self.scheduler.send_control(pane_key, signal)

    def set_display(self, pane_key: PaneKey, display_type: DisplayType) -> bool:
        command = self.scheduler.get(pane_key)
        if command is None:
            return False
        command.display_type = display_type
        return True

    # ------------------------------------------------------------------
    # Queued requests and job events
    # ------------------------------------------------------------------

    def request(self, control: AppControl) -> bool:
        """Queue a request without blocking. Dropped with a warning when full."""
        try:
            self.controls.put_nowait(control)
            return True
        except queue.Full:
            logger.warning("App control queue full; dropping %s for pane %r", control.kind.value, control.pane_key)
            return False

    def process_controls(self) -> int:
        """Apply every queued request. Returns how many were applied."""
        applied = 0
        while True:
            try:
                control = self.controls.get_nowait()
            except queue.Empty:
                return applied
            if control.kind is AppControlKind.SET_COMMAND and control.exec is not None:
                self.set_command(control.pane_key, control.exec)
            elif control.kind is AppControlKind.SEND_CONTROL and control.signal is not None:
                self.send_control(control.pane_key, control.signal)
            applied += 1

    def process_events(self, limit: int | None = None) -> list[OutputNotice]:
        """Drain pending job events and apply them."""
        return self.apply_events(self.scheduler.drain_events(limit))

    def apply_events(self, events: list[CommandEvent]) -> list[OutputNotice]:
        """Apply job events to their commands and report the completed runs.

        Events for killed panes or replaced commands are discarded.
        """
        notices: list[OutputNotice] = []
        for event in events:
            command = self.scheduler.get(event.pane_key)
            previous = command.last_output if command is not None else None
            output = self.scheduler.apply_event(event)
            if output is None:
                continue
            changed = previous is not None and previous.text != output.text
            notices.append(OutputNotice(event.pane_key, output, changed))
        return notices

    def should_beep(self, notice: OutputNotice) -> bool:
        return self.config.beep and not notice.output.succeeded

    def exit_reason(self, notice: OutputNotice) -> str | None:
        """Why the app should quit after this run, if the exit policies say so."""
        if self.config.err_exit and not notice.output.succeeded:
            return f"command exited with status {notice.output.exit_code}"
        if self.config.chg_exit and notice.changed:
            return "command output changed"
        return None

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def snapshot(self) -> session.SessionState:
        return session.SessionState(panes=self.panes, commands=self.scheduler.snapshot())

    def restore(self, state: session.SessionState) -> None:
        """Swap in a loaded session: stop every job and re-spawn from the saved state."""
        self.scheduler.restore(state.commands)
        self.panes = state.panes
        logger.info("Restored session with %d pane(s)", len(self.panes.leaves()))

    def save_session(self, name: str | None = None) -> Path:
        """Raises SessionError on failure."""
        state = self.snapshot()
        if name:
            return session.save_session_by_name(state, self.config.sessions_dir, name)
        return session.save_session(state, self.config.sessions_dir)

    def load_session(self, name: str | None = None) -> None:
        """Load a named session, or the latest one.

        The file is fully read and validated before anything live is
        replaced, so a failed load leaves the current panes and jobs as
        they were.

        Raises:
            SessionError: If the session cannot be loaded.
        """
        if name:
            state = session.load_session_by_name(self.config.sessions_dir, name)
        else:
            state = session.load_latest_session(self.config.sessions_dir)
        self.restore(state)

    def list_sessions(self) -> list[str]:
        return session.list_sessions(self.config.sessions_dir)

    def shutdown(self) -> None:
        """Stop every job. Subprocesses already running are left to finish."""
        self.scheduler.stop_all()
