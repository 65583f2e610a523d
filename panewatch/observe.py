"""Browsing a pane's stored output history.

HistoryBrowser is the state behind observe mode: which past run is selected
and what the search box holds. Index 0 is always the latest run; larger
indexes go further back. It reads the command's live history, so runs that
land while the browser is open show up on the next sync().
"""

from __future__ import annotations

from typing import Sequence

from rich.text import Text

from .command import CommandOutput

SEARCH_MATCH_STYLE = "black on yellow"


class HistoryBrowser:
    """Selection and search over a command's output history."""

    def __init__(self, history: Sequence[CommandOutput]):
        self.history = history
        self.selected = 0
        self.query = ""
        # The run being viewed when it is not the latest; None follows the latest
        self._pinned: CommandOutput | None = None

    def __len__(self) -> int:
        return len(self.history)

    def _output_at(self, index: int) -> CommandOutput:
        return self.history[len(self.history) - 1 - index]

    @property
    def current(self) -> CommandOutput | None:
        if not self.history:
            return None
        return self._output_at(self.selected)

    def sync(self) -> None:
        """Keep the selection on the same run after the history changed."""
        if not self.history:
            self.selected = 0
            self._pinned = None
            return
        if self._pinned is None:
            self.selected = 0
            return
        for index in range(len(self.history)):
            if self._output_at(index) is self._pinned:
                self.selected = index
                return
        # The pinned run was evicted; the oldest one left is the closest
        self.select(len(self.history) - 1)

    def select(self, index: int) -> bool:
        """Select a run by index, clamped to the history. Returns True if it moved."""
        if not self.history:
            return False
        index = max(0, min(index, len(self.history) - 1))
        moved = index != self.selected
        self.selected = index
        self._pinned = None if index == 0 else self._output_at(index)
        return moved

    def older(self) -> bool:
        return self.select(self.selected + 1)

    def newer(self) -> bool:
        return self.select(self.selected - 1)

    def latest(self) -> bool:
        return self.select(0)

    def labels(self) -> list[str]:
        """One label per run, latest first."""
        labels = []
        for index in range(len(self.history)):
            output = self._output_at(index)
            label = "Latest" if index == 0 else output.time.strftime("%H:%M:%S")
            if not output.succeeded:
                label += f" (exit {output.exit_code})"
            labels.append(label)
        return labels

    def matches(self) -> list[int]:
        """Indexes of runs whose output contains the query, ignoring case."""
        if not self.query:
            return []
        needle = self.query.lower()
        return [
            index
            for index in range(len(self.history))
            if needle in self._output_at(index).text.lower()
        ]

    def next_match(self) -> bool:
        """Select the next older run containing the query, wrapping to the latest.

        Returns False when no run matches.
        """
        matches = self.matches()
        if not matches:
            return False
        older = [index for index in matches if index > self.selected]
        self.select(older[0] if older else matches[0])
        return True

    def render(self) -> Text:
        """The selected run's output with search matches highlighted."""
        output = self.current
        if output is None:
            return Text("No output yet.", style="dim")
        text = Text(output.text)
        if self.query:
            text.highlight_words([self.query], SEARCH_MATCH_STYLE, case_sensitive=False)
        return text

    def status(self) -> str:
        output = self.current
        if output is None:
            return "0 runs"
        position = f"run {len(self.history) - self.selected} of {len(self.history)}"
        parts = [
            position,
            output.time.strftime("%Y-%m-%d %H:%M:%S"),
            f"exit {output.exit_code}",
            f"{output.duration:.2f}s",
        ]
        if self.query:
            parts.append(f"{len(self.matches())} matching run(s)")
        return "  ".join(parts)
