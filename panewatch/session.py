"""Session save/load with atomic file operations.

A session file is YAML:

    version: 1
    saved_at: 2026-10-19T10:30:45
    panes:
      active: 4294967298
      id_counter: 3
      friendly_ids: {4294967296: 1, 4294967298: 2}
      nodes: [...]
    commands:
      1: {exec: "date", interval: 5, state: Idle, display: RawText, history: [...]}

Commands are keyed by the pane's friendly id; opaque pane keys are only
meaningful inside the pane tree they were written with.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .arena import PaneKey
from .command import CommandSerializableState
from .exceptions import InvalidTreeError, SessionError
from .panes import PaneManager

logger = logging.getLogger(__name__)

SESSION_FORMAT_VERSION = 1
SESSION_SUFFIXES = (".yaml", ".yml")


@dataclass
class SessionState:
    """A pane tree plus the saved state of every pane's command."""

    panes: PaneManager
    commands: dict[PaneKey, CommandSerializableState] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        commands = {}
        for pane_key, state in self.commands.items():
            friendly_id = self.panes.friendly_id(pane_key)
            if friendly_id is None:
                logger.warning("Skipping command for unknown pane %r", pane_key)
                continue
            commands[friendly_id] = state.to_dict()
        return {
            "version": SESSION_FORMAT_VERSION,
            "saved_at": datetime.now().isoformat(timespec="seconds"),
            "panes": self.panes.to_dict(),
            "commands": commands,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SessionState":
        """Rebuild a session from to_dict() output.

        Raises:
            SessionError: If anything about the data is malformed.
        """
        if not isinstance(data, dict):
            raise SessionError("Session data must be a mapping")
        version = data.get("version", SESSION_FORMAT_VERSION)
        if version != SESSION_FORMAT_VERSION:
            raise SessionError(f"Unsupported session format version: {version!r}")

        try:
            panes = PaneManager.from_dict(data["panes"])
        except KeyError:
            raise SessionError("Session has no pane tree") from None
        except InvalidTreeError as e:
            raise SessionError(f"Invalid pane tree: {e}") from e

        raw_commands = data.get("commands") or {}
        if not isinstance(raw_commands, dict):
            raise SessionError("Session commands must be a mapping of pane id to command")

        commands: dict[PaneKey, CommandSerializableState] = {}
        for friendly_id, entry in raw_commands.items():
            try:
                pane_key = panes.key_for_friendly_id(int(friendly_id))
            except (TypeError, ValueError):
                raise SessionError(f"Invalid pane id {friendly_id!r}") from None
            if pane_key is None:
                raise SessionError(f"Command for unknown pane id {friendly_id}")
            try:
                commands[pane_key] = CommandSerializableState.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                raise SessionError(f"Invalid command for pane {friendly_id}: {e}") from e

        return cls(panes=panes, commands=commands)


def generate_session_filename() -> str:
    timestamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    return f"session-{timestamp}.yaml"


def normalize_session_name(name: str) -> str:
    """Turn a user-supplied name into a session filename.

    Raises:
        SessionError: If the name is empty or contains a path separator.
    """
    name = name.strip()
    if not name or "/" in name or os.sep in name or name in (".", ".."):
        raise SessionError(f"Invalid session name: {name!r}")
    if not name.endswith(SESSION_SUFFIXES):
        name = f"{name}.yaml"
    return name


def list_sessions(sessions_dir: Path) -> list[str]:
    """Session filenames in the directory, newest name first."""
    if not sessions_dir.is_dir():
        return []
    names = [
        path.name
        for path in sessions_dir.iterdir()
        if path.is_file() and path.suffix in SESSION_SUFFIXES
    ]
    return sorted(names, reverse=True)


def write_session(state: SessionState, path: Path) -> Path:
    """Write a session atomically using temp file + rename.

    Raises:
        SessionError: If the file cannot be written.
    """
    data = state.to_dict()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Temp file in the same directory so the rename stays on one filesystem
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".session_", suffix=".yaml")
    except OSError as e:
        raise SessionError(f"Failed to save session: {e}", str(path)) from e

    try:
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        os.rename(temp_path, path)
    except (OSError, yaml.YAMLError) as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise SessionError(f"Failed to save session: {e}", str(path)) from e

    logger.info("Saved session to %s", path)
    return path


def read_session(path: Path) -> SessionState:
    """Read and validate a session file.

    Raises:
        SessionError: If the file is missing, unreadable or malformed.
    """
    if not path.is_file():
        raise SessionError(f"Session file not found: {path.name}", str(path))
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SessionError(f"Failed to read session {path.name}: {e}", str(path)) from e

    try:
        state = SessionState.from_dict(data)
    except SessionError as e:
        raise SessionError(f"{path.name}: {e}", str(path)) from e
    logger.info("Loaded session from %s", path)
    return state


def save_session_by_name(state: SessionState, sessions_dir: Path, name: str) -> Path:
    return write_session(state, sessions_dir / normalize_session_name(name))


def save_session(state: SessionState, sessions_dir: Path) -> Path:
    """Save under a timestamped name."""
    return save_session_by_name(state, sessions_dir, generate_session_filename())


def load_session_by_name(sessions_dir: Path, name: str) -> SessionState:
    return read_session(sessions_dir / normalize_session_name(name))


def load_latest_session(sessions_dir: Path) -> SessionState:
    """Load the most recently modified session file.

    Raises:
        SessionError: If there are no sessions or the latest one is invalid.
    """
    if not sessions_dir.is_dir():
        raise SessionError("Sessions directory not found", str(sessions_dir))
    candidates = [
        path
        for path in sessions_dir.iterdir()
        if path.is_file() and path.suffix in SESSION_SUFFIXES
    ]
    if not candidates:
        raise SessionError("No session files found", str(sessions_dir))
    latest = max(candidates, key=lambda p: (p.stat().st_mtime, p.name))
    return read_session(latest)
