"""Display types and text rendering for pane contents."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterable

from rich.text import Text

if TYPE_CHECKING:
    from .command import CommandOutput


class DisplayType(Enum):
    """How a pane presents its command's output. Values are written to session files."""
    RAW_TEXT = "RawText"
    MULTI_LINE = "MultiLine"
    MULTI_LINE_TIME = "MultiLineTime"
    MULTI_LINE_DATE_TIME = "MultiLineDateTime"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "DisplayType":
        """Accept a token ('MultiLine') or a CLI-style name ('multi-line').

        Raises:
            ValueError: If the value names no display type.
        """
        normalized = value.replace("-", "").replace("_", "").lower()
        for display_type in cls:
            if display_type.value.lower() == normalized:
                return display_type
        raise ValueError(f"Unknown display type: {value!r}")


_LABELS = {
    DisplayType.RAW_TEXT: "Raw text",
    DisplayType.MULTI_LINE: "Multi-line",
    DisplayType.MULTI_LINE_TIME: "Multi-line (time)",
    DisplayType.MULTI_LINE_DATE_TIME: "Multi-line (date + time)",
}

_TIMESTAMP_FORMATS = {
    DisplayType.MULTI_LINE: None,
    DisplayType.MULTI_LINE_TIME: "%H:%M:%S",
    DisplayType.MULTI_LINE_DATE_TIME: "%Y-%m-%d %H:%M:%S",
}


def render_output(
    history: Iterable["CommandOutput"],
    display_type: DisplayType,
    max_lines: int | None = None,
) -> Text:
    """Render a pane's output history as rich Text.

    RAW_TEXT shows the latest output verbatim. The multi-line types show one
    line per run, newest last, optionally prefixed with the run's timestamp.
    Failed runs are styled red.
    """
    outputs = list(history)
    if not outputs:
        return Text("Waiting for first run...", style="dim")

    if display_type is DisplayType.RAW_TEXT:
        latest = outputs[-1]
        return Text(latest.text, style="" if latest.succeeded else "red")

    fmt = _TIMESTAMP_FORMATS[display_type]
    if max_lines is not None:
        outputs = outputs[-max_lines:]

    text = Text()
    for i, output in enumerate(outputs):
        if i:
            text.append("\n")
        if fmt:
            text.append(output.time.strftime(fmt) + "  ", style="dim")
        line = " ".join(output.text.split())
        text.append(line, style="" if output.succeeded else "red")
    return text
