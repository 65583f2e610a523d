"""State badge widget for a pane's command."""

from textual.widgets import Static

from ..command import CommandState


SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class StateBadge(Static):
    """A colored inline badge showing a command's state.

    - Executing → "⠋ RUN" (animated spinner, green)
    - Paused    → "PAUSE" (magenta)
    - Stopped   → "STOP"  (red)
    - Idle      → "IDLE"  (dim)
    - no command yet → "NEW"
    """

    def __init__(self, state: CommandState | None = None, **kwargs: object) -> None:
        self._state = state
        self._spinner_index = 0
        text, css_class = _badge_for(state)
        super().__init__(text, **kwargs)
        self.add_class("state-badge")
        self.add_class(css_class)

    def on_mount(self) -> None:
        self.set_interval(0.1, self._tick_spinner)

    def set_state(self, state: CommandState | None) -> None:
        if state is self._state:
            return
        _, old_class = _badge_for(self._state)
        self._state = state
        text, css_class = _badge_for(state)
        self.remove_class(old_class)
        self.add_class(css_class)
        self.update(text)

    def _tick_spinner(self) -> None:
        if self._state is not CommandState.EXECUTING:
            return
        self._spinner_index = (self._spinner_index + 1) % len(SPINNER_FRAMES)
        frame = SPINNER_FRAMES[self._spinner_index]
        self.update(f"{frame} RUN")


def _badge_for(state: CommandState | None) -> tuple[str, str]:
    """Return (badge_text, css_class) for a command state."""
    if state is CommandState.EXECUTING:
        frame = SPINNER_FRAMES[0]
        return f"{frame} RUN", "badge--running"
    elif state is CommandState.PAUSED:
        return "PAUSE", "badge--paused"
    elif state is CommandState.STOPPED:
        return "STOP", "badge--stopped"
    elif state is CommandState.IDLE:
        return "IDLE", "badge--idle"
    else:
        return "NEW", "badge--new"
