"""Per-pane command jobs.

Every pane with a command gets one daemon thread running a CommandJob. The
job sleeps on its control queue with a timeout equal to the time left until
its next tick, so a control signal and the timer are waited on together:

    - timeout expires (and not paused) -> run the command once
    - PAUSE / RESUME / EXECUTE / INTERVAL_* -> adjust and keep looping
    - STOP -> leave the loop

Jobs never touch the pane tree. They report through one shared, bounded
event queue that the UI loop drains; each event carries the pane key and a
job id so output from a replaced or killed job can be told apart.

Channels are bounded and never block the sender: a signal or event that
does not fit is dropped with a warning.
"""

from __future__ import annotations

import itertools
import logging
import math
import queue
import subprocess
import threading
import time
from datetime import datetime
from typing import Callable

from .arena import PaneKey
from .command import (
    DEFAULT_MAX_HISTORY,
    Command,
    CommandControl,
    CommandEvent,
    CommandOutput,
    CommandSerializableState,
    CommandState,
    ControlSignal,
    EventKind,
    step_interval,
)
from .display import DisplayType

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 100
CONTROL_QUEUE_SIZE = 1
SHELL = "sh"

# Bounded retries when Stop has to displace a pending signal
_STOP_ATTEMPTS = 3


class Ticker:
    """Periodic timer that skips missed ticks instead of bursting.

    The first tick is one period after creation. advance() keeps the
    original cadence; reset() re-anchors it to now.
    """

    def __init__(self, period: float, clock: Callable[[], float] = time.monotonic):
        self.period = period
        self._clock = clock
        self.next_fire = clock() + period

    def remaining(self) -> float:
        return max(self.next_fire - self._clock(), 0.0)

    def advance(self) -> None:
        """Schedule the next tick on the original cadence, dropping any missed ones."""
        self.next_fire += self.period
        now = self._clock()
        if self.next_fire <= now:
            missed = math.floor((now - self.next_fire) / self.period) + 1
            self.next_fire += missed * self.period

    def reset(self, period: float | None = None) -> None:
        if period is not None:
            self.period = period
        self.next_fire = self._clock() + self.period


def run_command(exec: str, on_started: Callable[[], None] | None = None) -> CommandOutput:
    """Run ``exec`` through the shell once and capture the result.

    On success the output is stdout. On a non-zero exit it is a message
    embedding the exit status and stderr.

    Raises:
        OSError: If the shell cannot be spawned or its pipes fail.
    """
    started = time.monotonic()
    proc = subprocess.Popen(
        [SHELL, "-c", exec],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    if on_started is not None:
        on_started()

    stdout, stderr = proc.communicate()
    duration = time.monotonic() - started

    if proc.returncode == 0:
        text = stdout
    else:
        text = f"Command failed with status: {proc.returncode}. Error: {stderr}"

    return CommandOutput(
        text=text,
        time=datetime.now(),
        exit_code=proc.returncode,
        duration=duration,
    )


class CommandJob:
    """The loop a pane's background thread runs."""

    def __init__(
        self,
        pane_key: PaneKey,
        job_id: int,
        exec: str,
        interval: float,
        events: queue.Queue,
        controls: queue.Queue,
        paused: bool = False,
    ):
        self.pane_key = pane_key
        self.job_id = job_id
        self.exec = exec
        self.interval = interval
        self.events = events
        self.controls = controls
        self.paused = paused

    def run(self) -> None:
        logger.info("Pane %r job %d started: %s", self.pane_key, self.job_id, self.exec)
        ticker = Ticker(self.interval)

        while True:
            timeout = None if self.paused else ticker.remaining()
            try:
                signal: ControlSignal = self.controls.get(timeout=timeout)
            except queue.Empty:
                logger.debug("Pane %r tick: %s", self.pane_key, self.exec)
                self._execute_once()
                ticker.advance()
                continue

            control = signal.control
            if control is CommandControl.STOP:
                logger.info("Pane %r job %d received stop", self.pane_key, self.job_id)
                break
            elif control is CommandControl.PAUSE:
                logger.info("Pane %r paused", self.pane_key)
                self.paused = True
            elif control is CommandControl.RESUME:
                logger.info("Pane %r resumed", self.pane_key)
                self.paused = False
                self._execute_once()
                ticker.reset()
            elif control is CommandControl.EXECUTE:
                logger.info("Pane %r ad-hoc execution", self.pane_key)
                self._execute_once()
                ticker.reset()
            elif control in (CommandControl.INTERVAL_INCREASE, CommandControl.INTERVAL_DECREASE):
                self.interval = step_interval(
                    self.interval, control is CommandControl.INTERVAL_INCREASE
                )
                ticker.reset(self.interval)
                logger.info("Pane %r interval now %ss", self.pane_key, self.interval)
            elif control is CommandControl.INTERVAL_SET and signal.interval is not None:
                self.interval = signal.interval
                ticker.reset(self.interval)
                logger.info("Pane %r interval set to %ss", self.pane_key, self.interval)

        logger.info("Pane %r job %d exited", self.pane_key, self.job_id)

    def _execute_once(self) -> None:
        try:
            output = run_command(self.exec, on_started=lambda: self._emit(EventKind.STARTED))
        except OSError as e:
            logger.warning("Pane %r failed to run %r: %s", self.pane_key, self.exec, e)
            return
        self._emit(EventKind.OUTPUT, output)

    def _emit(self, kind: EventKind, output: CommandOutput | None = None) -> None:
        event = CommandEvent(self.pane_key, self.job_id, kind, output)
        try:
            self.events.put_nowait(event)
        except queue.Full:
            logger.warning("Event queue full; dropping %s event for pane %r", kind.value, self.pane_key)


class JobHandle:
    """Control side of a running job: its signal queue and its thread."""

    def __init__(
        self,
        pane_key: PaneKey,
        job_id: int,
        controls: queue.Queue,
        thread: threading.Thread,
    ):
        self.pane_key = pane_key
        self.job_id = job_id
        self.controls = controls
        self.thread = thread

    @property
    def is_alive(self) -> bool:
        return self.thread.is_alive()

    def send(self, signal: ControlSignal) -> bool:
        """Best-effort delivery. Returns False if a previous signal is still pending."""
        try:
            self.controls.put_nowait(signal)
            return True
        except queue.Full:
            logger.warning(
                "Pane %r job %d busy; dropping %s", self.pane_key, self.job_id, signal.control.value
            )
            return False

    def stop(self) -> None:
        """Ask the job to exit. Safe to call any number of times.

        A pending undelivered signal is discarded to make room, since
        nothing after Stop matters. The job observes Stop at its next wait,
        so a subprocess already in flight runs to completion.
        """
        if not self.thread.is_alive():
            return
        stop = ControlSignal(CommandControl.STOP)
        for _ in range(_STOP_ATTEMPTS):
            try:
                self.controls.put_nowait(stop)
                return
            except queue.Full:
                try:
                    dropped = self.controls.get_nowait()
                    logger.debug("Pane %r: stop replaces pending %s", self.pane_key, dropped.control.value)
                except queue.Empty:
                    pass
        logger.warning("Pane %r job %d: could not deliver stop", self.pane_key, self.job_id)

    def join(self, timeout: float | None = None) -> bool:
        self.thread.join(timeout)
        return not self.thread.is_alive()


class Scheduler:
    """Spawns, tracks and controls one job per pane key.

    The scheduler only knows pane keys; it never looks at the tree. All
    methods are meant to be called from the UI loop thread.
    """

    def __init__(
        self,
        events: queue.Queue | None = None,
        max_history: int = DEFAULT_MAX_HISTORY,
    ):
        self.events: queue.Queue = events if events is not None else queue.Queue(maxsize=EVENT_QUEUE_SIZE)
        self.max_history = max_history
        self.commands: dict[PaneKey, Command] = {}
        self._job_ids = itertools.count(1)

    def get(self, pane_key: PaneKey) -> Command | None:
        return self.commands.get(pane_key)

    def spawn(
        self,
        pane_key: PaneKey,
        exec: str,
        interval: float,
        *,
        state: CommandState = CommandState.IDLE,
        display_type: DisplayType = DisplayType.RAW_TEXT,
        history: list[CommandOutput] | None = None,
    ) -> Command:
        """Start a job for ``pane_key`` and return its Command record.

        The job's first run happens one interval from now (or never, until
        resumed, if ``state`` is PAUSED). Does not register the command;
        see set_command() and restore().
        """
        controls: queue.Queue = queue.Queue(maxsize=CONTROL_QUEUE_SIZE)
        job_id = next(self._job_ids)
        job = CommandJob(
            pane_key,
            job_id,
            exec,
            interval,
            self.events,
            controls,
            paused=state is CommandState.PAUSED,
        )
        thread = threading.Thread(
            target=job.run,
            name=f"pane-{pane_key.index}-job-{job_id}",
            daemon=True,
        )
        handle = JobHandle(pane_key, job_id, controls, thread)
        thread.start()

        return Command(
            exec,
            interval,
            handle,
            state=state,
            display_type=display_type,
            max_history=self.max_history,
            history=history,
        )

    def spawn_from_state(self, pane_key: PaneKey, saved: CommandSerializableState) -> Command:
        """Re-spawn a saved command with its interval, history, state and display.

        A saved Paused command starts paused without a forced run. A saved
        Stopped command keeps its history but its job exits immediately.
        """
        state = saved.state
        if state is CommandState.EXECUTING:
            state = CommandState.IDLE

        command = self.spawn(
            pane_key,
            saved.exec,
            saved.interval,
            state=CommandState.PAUSED if state is CommandState.STOPPED else state,
            display_type=saved.display_type,
            history=saved.history,
        )
        if state is CommandState.STOPPED:
            command.handle.stop()
            command.state = CommandState.STOPPED
        logger.info("Restored command for pane %r: %s", pane_key, saved.exec)
        return command

    def set_command(
        self,
        pane_key: PaneKey,
        exec: str,
        interval: float,
        display_type: DisplayType | None = None,
        run_now: bool = True,
    ) -> Command:
        """Replace whatever runs in ``pane_key`` with a fresh job.

        The old job is stopped and its history discarded. With ``run_now``
        the new job runs once immediately instead of waiting a full interval.
        """
        previous = self.commands.pop(pane_key, None)
        if previous is not None:
            previous.handle.stop()
            if display_type is None:
                display_type = previous.display_type

        logger.info("Adding new command for pane %r: %s", pane_key, exec)
        command = self.spawn(
            pane_key,
            exec,
            interval,
            display_type=display_type or DisplayType.RAW_TEXT,
        )
        self.commands[pane_key] = command
        if run_now:
            command.handle.send(ControlSignal(CommandControl.EXECUTE))
        return command

    def restore(self, saved: dict[PaneKey, CommandSerializableState]) -> None:
        """Replace every job with ones re-spawned from saved state."""
        self.stop_all()
        self.commands = {
            pane_key: self.spawn_from_state(pane_key, state) for pane_key, state in saved.items()
        }

    def remove(self, pane_key: PaneKey) -> bool:
        """Stop and forget the job for ``pane_key``."""
        command = self.commands.pop(pane_key, None)
        if command is None:
            return False
        command.handle.stop()
        logger.info("Removed command for pane %r", pane_key)
        return True

    def stop(self, pane_key: PaneKey) -> bool:
        """Stop the job but keep the command and its history on the pane."""
        return self.send_control(pane_key, CommandControl.STOP)

    def send_control(self, pane_key: PaneKey, signal: ControlSignal | CommandControl) -> bool:
        if isinstance(signal, CommandControl):
            signal = ControlSignal(signal)
        command = self.commands.get(pane_key)
        if command is None:
            logger.debug("No command for pane %r; ignoring %s", pane_key, signal.control.value)
            return False
        return command.send_control(signal)

    def stop_all(self) -> None:
        for command in self.commands.values():
            command.handle.stop()

    def drain_events(self, limit: int | None = None) -> list[CommandEvent]:
        """Take up to ``limit`` pending events without blocking."""
        events: list[CommandEvent] = []
        while limit is None or len(events) < limit:
            try:
                events.append(self.events.get_nowait())
            except queue.Empty:
                break
        return events

    def apply_event(self, event: CommandEvent) -> CommandOutput | None:
        """Route one event to its command. Events from stale jobs are ignored."""
        command = self.commands.get(event.pane_key)
        if command is None or command.job_id != event.job_id:
            logger.debug("Ignoring %s from stale job %d", event.kind.value, event.job_id)
            return None
        return command.apply_event(event)

    def snapshot(self) -> dict[PaneKey, CommandSerializableState]:
        return {pane_key: command.to_state() for pane_key, command in self.commands.items()}
