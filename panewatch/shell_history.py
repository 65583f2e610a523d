"""Command suggestions from the user's shell history file."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10


def get_history_path(environ: dict[str, str] | None = None) -> Path:
    """Pick ~/.zsh_history or ~/.bash_history based on $SHELL."""
    environ = os.environ if environ is None else environ
    shell = environ.get("SHELL", "/bin/bash")
    home = Path(environ.get("HOME") or Path.home())
    if "zsh" in shell:
        return home / ".zsh_history"
    return home / ".bash_history"


def _strip_zsh_metadata(line: str) -> str:
    # Extended zsh history lines look like ": 1700000000:0;git status"
    if line.startswith(": ") and ";" in line:
        return line.split(";", 1)[1]
    return line


class HistoryManager:
    """Loads shell history once and filters it by prefix."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_history_path()
        self.commands = self._load()
        logger.debug("history length: %d", len(self.commands))

    def _load(self) -> list[str]:
        if not self.path.exists():
            logger.warning("History file not found at %s", self.path)
            return []
        try:
            contents = self.path.read_text(errors="replace")
        except OSError as e:
            logger.warning("Could not read history file %s: %s", self.path, e)
            return []

        commands = []
        for line in contents.splitlines():
            line = _strip_zsh_metadata(line.strip()).strip()
            if line and not line.startswith("#"):
                commands.append(line)
        return commands

    def filter(self, prefix: str) -> list[str]:
        """Most recent distinct commands starting with ``prefix``."""
        if not prefix:
            return []
        matches: list[str] = []
        for command in reversed(self.commands):
            if command.startswith(prefix) and command not in matches:
                matches.append(command)
                if len(matches) == MAX_SUGGESTIONS:
                    break
        return matches
