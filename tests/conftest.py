"""Shared test fixtures for panewatch tests."""

from unittest.mock import MagicMock

import pytest

from panewatch.command import Command
from panewatch.config import AppConfig
from panewatch.scheduler import JobHandle, Scheduler
from panewatch.workspace import Workspace


@pytest.fixture
def sessions_dir(tmp_path):
    """Empty sessions directory."""
    path = tmp_path / "sessions"
    path.mkdir()
    return path


@pytest.fixture
def app_config(tmp_path, sessions_dir):
    """AppConfig pointed at temp directories, with a short interval."""
    return AppConfig(
        interval=1.0,
        sessions_dir=sessions_dir,
        logs_dir=tmp_path / "logs",
    )


@pytest.fixture
def scheduler():
    """A scheduler whose jobs are stopped after the test."""
    sched = Scheduler()
    yield sched
    sched.stop_all()


@pytest.fixture
def workspace(app_config):
    """A workspace whose jobs are stopped after the test."""
    ws = Workspace(app_config)
    yield ws
    ws.shutdown()


@pytest.fixture
def mock_handle():
    """JobHandle stand-in that accepts every signal."""
    handle = MagicMock(spec=JobHandle)
    handle.job_id = 1
    handle.send.return_value = True
    return handle


@pytest.fixture
def make_command(mock_handle):
    """Factory for Command records backed by a mock job handle."""
    def _make(exec="echo hi", interval=5.0, **kwargs):
        return Command(exec, interval, mock_handle, **kwargs)
    return _make
