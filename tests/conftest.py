"""Shared fixtures for clock countdown tests."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from countdown_logic import TaskRegistry
from countdown_store import ConfigManager


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeWallClock:
    def __init__(self, start=datetime(2024, 5, 1, 9, 30, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def registry(clock, wall_clock):
    return TaskRegistry(clock=clock, wall_clock=wall_clock)


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "countdown_state.json"


@pytest.fixture
def config(state_file: Path) -> ConfigManager:
    return ConfigManager(state_file)
