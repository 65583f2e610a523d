"""Modal screens for the app's input modes.

Each modal dismisses with its result, or with None when closed with Escape:

- CommandInputModal  -> command string
- SessionSaveModal   -> session name ("" means a timestamped name)
- SessionLoadModal   -> session filename
- DisplaySelectModal -> DisplayType
- ObserveModal and HelpModal are read-only and dismiss with None
"""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Input, Label, OptionList, Static
from textual.widgets.option_list import Option

from ..command import Command, format_interval
from ..config import AppConfig
from ..display import DisplayType
from ..observe import HistoryBrowser
from ..shell_history import HistoryManager


class CommandInputModal(ModalScreen):
    """Edit the active pane's command, with suggestions from shell history.

    Typing filters the history by prefix; picking a suggestion runs it.
    """

    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=True),
        Binding("down", "focus_suggestions", "Suggestions", show=False),
    ]

    def __init__(
        self,
        current: str = "",
        history: HistoryManager | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)
        self._current = current
        self._history = history

    def compose(self) -> ComposeResult:
        with Container(id="command-dialog", classes="modal-dialog"):
            yield Label("Command  (Enter to run, Esc to cancel)", classes="modal-title")
            yield Input(value=self._current, placeholder="e.g. date", id="command-input")
            yield OptionList(id="command-suggestions")

    def on_mount(self) -> None:
        self.query_one("#command-input", Input).focus()
        self._update_suggestions(self._current)

    def on_input_changed(self, event: Input.Changed) -> None:
        self._update_suggestions(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        self.dismiss(value or None)

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)

    def action_focus_suggestions(self) -> None:
        option_list = self.query_one("#command-suggestions", OptionList)
        if option_list.option_count:
            option_list.focus()

    def _update_suggestions(self, prefix: str) -> None:
        suggestions = self._history.filter(prefix) if self._history else []
        option_list = self.query_one("#command-suggestions", OptionList)
        option_list.clear_options()
        option_list.add_options([Option(Text(command), id=command) for command in suggestions])
        option_list.display = bool(suggestions)


class SessionSaveModal(ModalScreen):
    """Ask for a session name. A blank name saves under a timestamp."""

    BINDINGS = [Binding("escape", "dismiss", "Close", show=True)]

    def compose(self) -> ComposeResult:
        with Container(id="session-save-dialog", classes="modal-dialog"):
            yield Label("Save session  (Enter to save, Esc to cancel)", classes="modal-title")
            yield Input(placeholder="name (blank for timestamp)", id="session-name")

    def on_mount(self) -> None:
        self.query_one("#session-name", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip())


class SessionLoadModal(ModalScreen):
    """Pick a saved session, newest name first."""

    BINDINGS = [Binding("escape", "dismiss", "Close", show=True)]

    def __init__(self, sessions: list[str], **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._sessions = sessions

    def compose(self) -> ComposeResult:
        with Container(id="session-load-dialog", classes="modal-dialog"):
            yield Label("Load session  (Enter to load, Esc to cancel)", classes="modal-title")
            if self._sessions:
                yield OptionList(
                    *[Option(Text(name), id=name) for name in self._sessions],
                    id="session-list",
                )
            else:
                yield Label("(no saved sessions)", classes="dim-text")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)


class DisplaySelectModal(ModalScreen):
    """Pick how the active pane presents its output."""

    BINDINGS = [Binding("escape", "dismiss", "Close", show=True)]

    def __init__(self, current: DisplayType, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._current = current

    def compose(self) -> ComposeResult:
        with Container(id="display-dialog", classes="modal-dialog"):
            yield Label("Display type  (Enter to select, Esc to cancel)", classes="modal-title")
            yield OptionList(
                *[Option(d.label, id=d.value) for d in DisplayType],
                id="display-list",
            )

    def on_mount(self) -> None:
        option_list = self.query_one("#display-list", OptionList)
        option_list.highlighted = list(DisplayType).index(self._current)
        option_list.focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(DisplayType(event.option.id))


class ObserveModal(ModalScreen):
    """Step through a pane's past runs and search their output.

    Up/Down move between runs (the latest is at the top of the list);
    Enter in the search box jumps to the next older run that matches.
    """

    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=True),
        Binding("up", "newer", "Newer", show=True),
        Binding("down", "older", "Older", show=True),
        Binding("pageup", "latest", "Latest", show=False),
    ]

    REFRESH_INTERVAL = 0.5

    def __init__(self, command: Command, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._command = command
        self.browser = HistoryBrowser(command.history)
        self._labels: list[str] = []

    def compose(self) -> ComposeResult:
        with Container(id="observe-dialog", classes="modal-dialog"):
            yield Label(
                Text(f"History: {self._command.exec}  (Esc to close)"),
                classes="modal-title",
            )
            yield Input(placeholder="search (Enter for next match)", id="observe-search")
            with Horizontal(id="observe-body"):
                with VerticalScroll(id="observe-content"):
                    yield Static("", id="observe-output")
                history = OptionList(id="observe-history")
                history.can_focus = False
                yield history
            yield Label("", id="observe-status", classes="dim-text")

    def on_mount(self) -> None:
        self.query_one("#observe-search", Input).focus()
        self._refresh_view()
        self.set_interval(self.REFRESH_INTERVAL, self._refresh_view)

    def on_input_changed(self, event: Input.Changed) -> None:
        self.browser.query = event.value
        self._refresh_view()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if not self.browser.next_match():
            self.notify("No matching runs", severity="warning", timeout=2)
        self._refresh_view()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.browser.select(event.option_index)
        self._refresh_view()

    def action_newer(self) -> None:
        if self.browser.newer():
            self._refresh_view()

    def action_older(self) -> None:
        if self.browser.older():
            self._refresh_view()

    def action_latest(self) -> None:
        if self.browser.latest():
            self._refresh_view()

    def _refresh_view(self) -> None:
        self.browser.sync()
        history = self.query_one("#observe-history", OptionList)
        labels = self.browser.labels()
        if labels != self._labels:
            history.clear_options()
            history.add_options([Option(Text(label)) for label in labels])
            self._labels = labels
        if labels:
            history.highlighted = self.browser.selected
        self.query_one("#observe-output", Static).update(self.browser.render())
        self.query_one("#observe-status", Label).update(Text(self.browser.status()))


KEY_LABELS = {
    "plus": "+",
    "minus": "-",
    "greater_than_sign": ">",
    "less_than_sign": "<",
    "question_mark": "?",
}


def format_bindings(bindings: list[Binding]) -> list[tuple[str, str]]:
    """(key, description) pairs for the help screen, in binding order."""
    return [(KEY_LABELS.get(b.key, b.key), b.description) for b in bindings]


class HelpModal(ModalScreen):
    """Current settings and every key binding."""

    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=True),
        Binding("question_mark", "dismiss", "Close", show=False),
    ]

    def __init__(self, config: AppConfig, bindings: list[Binding], **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._config = config
        self._bindings = bindings

    def compose(self) -> ComposeResult:
        settings = Text()
        for name, value in [
            ("Interval", format_interval(self._config.interval)),
            ("Max history", str(self._config.max_history)),
            ("Log level", self._config.log_level or "None"),
            ("Logs dir", str(self._config.logs_dir)),
            ("Sessions dir", str(self._config.sessions_dir)),
        ]:
            settings.append(f"{name:<14}", style="bold")
            settings.append(f"{value}\n", style="cyan")

        keys = Text()
        for key, description in format_bindings(self._bindings):
            keys.append(f"{key:<10}", style="yellow")
            keys.append(f"{description}\n")

        with Container(id="help-dialog", classes="modal-dialog"):
            yield Label("Help & settings  (Esc to close)", classes="modal-title")
            with Horizontal(id="help-body"):
                with Vertical(classes="help-column"):
                    yield Label("Settings", classes="help-heading")
                    yield Static(settings)
                with Vertical(classes="help-column"):
                    yield Label("Keys", classes="help-heading")
                    yield Static(keys)
