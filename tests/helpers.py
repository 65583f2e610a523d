"""Helpers shared by the scheduler and workspace tests."""

import queue
import time
from datetime import datetime, timedelta

from panewatch.command import CommandOutput


def make_output(text="hi\n", exit_code=0, seconds=0):
    """A CommandOutput stamped ``seconds`` after a fixed base time."""
    return CommandOutput(
        text=text,
        time=datetime(2026, 1, 1, 12, 0, 0) + timedelta(seconds=seconds),
        exit_code=exit_code,
        duration=0.01,
    )


def collect_outputs(scheduler, duration, poll=0.05):
    """Apply scheduler events for ``duration`` seconds; return the outputs that landed."""
    landed = []
    deadline = time.monotonic() + duration
    while time.monotonic() < deadline:
        try:
            event = scheduler.events.get(timeout=poll)
        except queue.Empty:
            continue
        output = scheduler.apply_event(event)
        if output is not None:
            landed.append((event.pane_key, output))
    return landed


def wait_for_outputs(scheduler, count, timeout=5.0, poll=0.05):
    """Apply scheduler events until ``count`` outputs land or ``timeout`` passes."""
    landed = []
    deadline = time.monotonic() + timeout
    while len(landed) < count and time.monotonic() < deadline:
        try:
            event = scheduler.events.get(timeout=poll)
        except queue.Empty:
            continue
        output = scheduler.apply_event(event)
        if output is not None:
            landed.append((event.pane_key, output))
    return landed
