"""Textual TUI app for panewatch.

Launch with: panewatch [options] [command...]
"""

from __future__ import annotations

import logging
import queue
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.screen import ModalScreen
from textual.widgets import Footer, Header
from textual.worker import get_current_worker

from .command import CommandControl, CommandEvent, ControlSignal
from .config import AppConfig
from .display import DisplayType
from .exceptions import SessionError
from .panes import Direction, Orientation, Rect
from .shell_history import HistoryManager
from .widgets.modals import (
    CommandInputModal,
    DisplaySelectModal,
    HelpModal,
    ObserveModal,
    SessionLoadModal,
    SessionSaveModal,
)
from .widgets.pane_view import PaneGrid
from .workspace import AppControl, AppControlKind, OutputNotice, Workspace

logger = logging.getLogger(__name__)

REDRAW_INTERVAL = 0.25
# How long the event listener blocks before checking whether it was cancelled
EVENT_POLL_TIMEOUT = 0.25
EVENT_BATCH_LIMIT = 50


class PanewatchApp(App):
    """Split-pane command watcher built with Textual.

    Every pane runs one shell command on an interval. Panes split side by
    side (h) or stacked (v), and the whole layout with each pane's command
    and history can be saved to and loaded from a session file.
    """

    CSS_PATH = Path(__file__).parent / "styles" / "panewatch.tcss"

    TITLE = "panewatch"

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("c", "edit_command", "Command", show=True),
        Binding("h", "split('horizontal')", "Split |", show=True),
        Binding("v", "split('vertical')", "Split -", show=True),
        Binding("x", "kill", "Kill", show=True),
        Binding("tab", "cycle", "Next", show=False, priority=True),
        Binding("up", "navigate('up')", "Up", show=False),
        Binding("down", "navigate('down')", "Down", show=False),
        Binding("left", "navigate('left')", "Left", show=False),
        Binding("right", "navigate('right')", "Right", show=False),
        Binding("space", "control('execute')", "Run now", show=True),
        Binding("p", "control('pause')", "Pause", show=True),
        Binding("r", "control('resume')", "Resume", show=True),
        Binding("i", "control('interval_increase')", "Slower", show=False),
        Binding("d", "control('interval_decrease')", "Faster", show=False),
        Binding("plus", "resize('right', 1)", "Wider", show=False),
        Binding("minus", "resize('left', -1)", "Narrower", show=False),
        Binding("greater_than_sign", "resize('down', 1)", "Taller", show=False),
        Binding("less_than_sign", "resize('up', -1)", "Shorter", show=False),
        Binding("t", "select_display", "Display", show=True),
        Binding("o", "observe", "History", show=True),
        Binding("question_mark", "help", "Help", show=True),
        Binding("s", "save_session", "Save", show=True),
        Binding("l", "load_latest_session", "Load", show=True),
        Binding("S", "save_session_as", "Save as", show=False),
        Binding("L", "load_session", "Load...", show=False),
    ]

    def __init__(
        self,
        config: AppConfig | None = None,
        initial_command: str | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or AppConfig()
        self.workspace = Workspace(self.config)
        self._initial_command = initial_command
        self._history: HistoryManager | None = None

    def compose(self) -> ComposeResult:
        if not self.config.zen:
            yield Header()
        yield PaneGrid(id="pane-grid")
        if not self.config.zen:
            yield Footer()

    async def on_mount(self) -> None:
        if self._initial_command:
            self.workspace.set_command(self.workspace.active, self._initial_command)
        await self._rebuild_panes()
        self.set_interval(REDRAW_INTERVAL, self._tick)
        self._listen_for_events()

    def on_unmount(self) -> None:
        self.workspace.shutdown()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        # Tab is a priority binding; leave it to the modal when one is open
        if action == "cycle" and isinstance(self.screen, ModalScreen):
            return False
        return True

    # ------------------------------------------------------------------
    # Event flow
    # ------------------------------------------------------------------

    @work(thread=True, exclusive=True, group="events")
    def _listen_for_events(self) -> None:
        """Wait on the jobs' event queue and hand batches to the UI thread."""
        events = self.workspace.scheduler.events
        worker = get_current_worker()
        while not worker.is_cancelled:
            try:
                first = events.get(timeout=EVENT_POLL_TIMEOUT)
            except queue.Empty:
                continue
            batch: list[CommandEvent] = [first]
            while len(batch) < EVENT_BATCH_LIMIT:
                try:
                    batch.append(events.get_nowait())
                except queue.Empty:
                    break
            if worker.is_cancelled:
                break
            self.call_from_thread(self._apply_events, batch)

    def _apply_events(self, events: list[CommandEvent]) -> None:
        """Apply job events and run the exit/alert policies (called on UI thread)."""
        notices = self.workspace.apply_events(events)
        for notice in notices:
            self._run_policies(notice)
        self._refresh_views()

    def _run_policies(self, notice: OutputNotice) -> None:
        if not notice.output.succeeded:
            logger.warning(
                "Pane %r exited with status %s", notice.pane_key, notice.output.exit_code
            )
        if self.workspace.should_beep(notice):
            self.bell()
        reason = self.workspace.exit_reason(notice)
        if reason:
            logger.info("Exiting: %s", reason)
            self.exit(message=reason)

    def _tick(self) -> None:
        """Redraw tick: apply queued requests and keep pane headers current."""
        grid = self.query_one(PaneGrid)
        self.workspace.area = Rect(0, 0, grid.size.width, grid.size.height)
        self.workspace.process_controls()
        self._refresh_views()

    def _refresh_views(self) -> None:
        grid = self.query_one(PaneGrid)
        active = self.workspace.active
        for pane_key, view in grid.views.items():
            view.show(
                self.workspace.command_for(pane_key),
                active=pane_key == active,
                zen=self.config.zen,
                wrap=self.config.wrap,
            )

    async def _rebuild_panes(self) -> None:
        await self.query_one(PaneGrid).rebuild(self.workspace.panes)
        self._refresh_views()

    # ------------------------------------------------------------------
    # Pane actions
    # ------------------------------------------------------------------

    async def action_split(self, orientation: str) -> None:
        if self.workspace.split(Orientation[orientation.upper()]):
            await self._rebuild_panes()

    async def action_kill(self) -> None:
        if self.workspace.kill():
            await self._rebuild_panes()
        else:
            self.notify("Cannot kill the last pane", severity="warning", timeout=2)

    def action_cycle(self) -> None:
        if self.workspace.cycle():
            self._refresh_views()

    def action_navigate(self, direction: str) -> None:
        if self.workspace.navigate(Direction[direction.upper()]):
            self._refresh_views()

    async def action_resize(self, direction: str, amount: int) -> None:
        if self.workspace.resize(Direction[direction.upper()], amount):
            await self._rebuild_panes()

    def action_control(self, control: str) -> None:
        self.workspace.request(
            AppControl(
                AppControlKind.SEND_CONTROL,
                self.workspace.active,
                signal=ControlSignal(CommandControl(control)),
            )
        )
        self.workspace.process_controls()
        self._refresh_views()

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def action_edit_command(self) -> None:
        if self._history is None:
            self._history = HistoryManager()
        pane_key = self.workspace.active
        command = self.workspace.command_for(pane_key)

        def apply(exec: str | None) -> None:
            if not exec:
                return
            self.workspace.request(AppControl(AppControlKind.SET_COMMAND, pane_key, exec=exec))
            self.workspace.process_controls()
            self._refresh_views()

        self.push_screen(
            CommandInputModal(command.exec if command else "", self._history),
            apply,
        )

    def action_select_display(self) -> None:
        pane_key = self.workspace.active
        command = self.workspace.command_for(pane_key)
        if command is None:
            self.notify("No command in this pane", severity="warning", timeout=2)
            return

        def apply(display_type: DisplayType | None) -> None:
            if display_type is not None and self.workspace.set_display(pane_key, display_type):
                self._refresh_views()

        self.push_screen(DisplaySelectModal(command.display_type), apply)

    def action_observe(self) -> None:
        command = self.workspace.active_command
        if command is None:
            self.notify("No command in this pane", severity="warning", timeout=2)
            return
        self.push_screen(ObserveModal(command))

    def action_help(self) -> None:
        self.push_screen(HelpModal(self.config, self.BINDINGS))

    def action_save_session(self) -> None:
        self._save_session(None)

    def action_save_session_as(self) -> None:
        def apply(name: str | None) -> None:
            if name is not None:
                self._save_session(name)

        self.push_screen(SessionSaveModal(), apply)

    async def action_load_latest_session(self) -> None:
        await self._load_session(None)

    def action_load_session(self) -> None:
        async def apply(name: str | None) -> None:
            if name:
                await self._load_session(name)

        self.push_screen(SessionLoadModal(self.workspace.list_sessions()), apply)

    def _save_session(self, name: str | None) -> None:
        try:
            path = self.workspace.save_session(name or None)
        except SessionError as exc:
            logger.error("Error saving session: %s", exc)
            self.notify(f"Session save failed: {exc}", severity="error", timeout=4)
            return
        self.notify(f"Saved session {path.name}", timeout=2)

    async def _load_session(self, name: str | None) -> None:
        try:
            self.workspace.load_session(name)
        except SessionError as exc:
            logger.error("Error loading session: %s", exc)
            self.notify(f"Session load failed: {exc}", severity="error", timeout=4)
            return
        await self._rebuild_panes()
        self.notify("Session loaded", timeout=2)
