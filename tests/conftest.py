"""Shared fixtures: pinned clock, isolated settings and a ready workspace."""

from datetime import datetime, timedelta, timezone

import pytest

from novel_ledger.config import Settings
from novel_ledger.workspace import Workspace

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Clock that returns a fixed time and moves forward by ``step`` on each read."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self.step
        return value

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, data_dir=tmp_path, remote_url="")


@pytest.fixture
def workspace(settings, clock, tmp_path):
    """Local-only workspace writing to a temporary session file."""
    return Workspace(settings=settings, clock=clock, path=tmp_path / "session.json")


@pytest.fixture
def book_id(workspace):
    """A current book named "The Long Road"."""
    return workspace.gateway.add_book("The Long Road", genre="Fantasy")
