"""Pane widgets: one PaneView per leaf, nested inside split containers."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Label, Static

from ..arena import PaneKey
from ..command import Command, format_interval
from ..display import DisplayType, render_output
from ..panes import Orientation, PaneManager
from .state_badge import StateBadge


class PaneBody(VerticalScroll):
    """Scrollable output area. Not focusable, so keys reach the app bindings."""

    can_focus = False


class PaneView(Vertical):
    """A single pane: header with state badge and command, then its output."""

    def __init__(self, pane_key: PaneKey, friendly_id: int | None, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.pane_key = pane_key
        self.friendly_id = friendly_id
        # What the body currently shows, to skip re-rendering unchanged output
        self._rendered: tuple | None = None
        self.add_class("pane")

    def compose(self) -> ComposeResult:
        with Horizontal(classes="pane-header"):
            yield StateBadge(None, classes="pane-badge")
            yield Label("", classes="pane-title")
        with PaneBody(classes="pane-body"):
            yield Static("", classes="pane-output")

    def show(self, command: Command | None, active: bool, zen: bool, wrap: bool) -> None:
        """Bring the pane up to date with its command (called on the UI thread)."""
        self.set_class(active, "pane--active")
        try:
            header = self.query_one(".pane-header", Horizontal)
            badge = self.query_one(StateBadge)
            title = self.query_one(".pane-title", Label)
            output = self.query_one(".pane-output", Static)
            body = self.query_one(PaneBody)
        except NoMatches:
            # Not composed yet; the next tick catches up
            return

        header.display = not zen
        label = f"[{self.friendly_id}]" if self.friendly_id is not None else "[?]"
        if command is None:
            badge.set_state(None)
            title.update(Text(f"{label} no command (press c)"))
            rendered: tuple = (None, wrap)
            if rendered != self._rendered:
                output.update(Text("No command set. Press c to enter one.", style="dim"))
                self._rendered = rendered
            return

        badge.set_state(command.state)
        title.update(
            Text(
                f"{label} {command.exec}  every {format_interval(command.interval)}"
                f"  ({command.display_type.label})"
            )
        )

        last = command.last_output
        rendered = (id(last), len(command.history), command.display_type, wrap)
        if rendered == self._rendered:
            return
        self._rendered = rendered

        text = render_output(command.history, command.display_type)
        text.no_wrap = not wrap
        output.update(text)
        if command.display_type is not DisplayType.RAW_TEXT:
            body.scroll_end(animate=False)


class PaneGrid(Container):
    """Lays the pane tree out as nested Horizontal/Vertical containers.

    Each child's share of its split is its weight, expressed in fr units.
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.views: dict[PaneKey, PaneView] = {}

    async def rebuild(self, panes: PaneManager) -> None:
        """Throw away the current widgets and build them again from ``panes``."""
        self.views = {}
        await self.remove_children()
        root = panes.root()
        if root is None:
            return
        await self.mount(self._build(panes, root))

    def _build(self, panes: PaneManager, key: PaneKey) -> Widget:
        node = panes.nodes[key]
        if node.is_leaf:
            view = PaneView(key, panes.friendly_id(key))
            self.views[key] = view
            return view

        split = node.data
        children = [self._build(panes, child) for child in split.children]
        for child_key, widget in zip(split.children, children):
            weight = panes.nodes[child_key].weight
            if split.orientation is Orientation.HORIZONTAL:
                widget.styles.width = f"{weight}fr"
                widget.styles.height = "1fr"
            else:
                widget.styles.height = f"{weight}fr"
                widget.styles.width = "1fr"

        if split.orientation is Orientation.HORIZONTAL:
            return Horizontal(*children, classes="pane-split")
        return Vertical(*children, classes="pane-split")
