"""Shared pytest fixtures for StudyPulse tests."""

import os
import sys

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from PyQt6.QtWidgets import QApplication

from studypulse.database.db import configure_engine, init_db
from studypulse.service import StudySessionService
from studypulse.settings import Settings
from studypulse.timer.engine import CountdownTimerEngine

from helpers import FakeClock


@pytest.fixture(scope="session")
def qapp():
    """A single QApplication instance shared across the entire test run."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db():
    """Point every test at a fresh in-memory SQLite database."""
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """Keep settings and snapshots out of the real home directory."""
    monkeypatch.setattr("studypulse.settings.APP_SUPPORT_DIR", tmp_path)
    monkeypatch.setattr("studypulse.settings.SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr("studypulse.snapshot.SNAPSHOT_PATH", tmp_path / "timer_state.json")


@pytest.fixture
def clock():
    """Monotonic clock the tests move by hand."""
    return FakeClock()


@pytest.fixture
def wall():
    """Wall clock (epoch seconds) the tests move by hand."""
    return FakeClock(start_ms=1_700_000_000_000)


@pytest.fixture
def engine(qapp, clock):
    """Fresh engine on the fake clock; polls are driven by the test."""
    return CountdownTimerEngine(parent=None, clock=clock)


@pytest.fixture
def settings():
    return Settings(
        work_duration=25 * 60,
        short_break_duration=5 * 60,
        long_break_duration=15 * 60,
    )


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "timer_state.json"


@pytest.fixture
def service(engine, settings, wall, snapshot_path):
    """Service with DB and snapshots on, sharing the fake-clock engine."""
    return StudySessionService(
        parent=None,
        settings=settings,
        engine=engine,
        snapshot_path=snapshot_path,
        wall_clock=wall,
    )
