"""Durable timer snapshot so a restarted process can pick up a session.

The engine keeps no durable state of its own.  The host writes a
snapshot on every command and, after a restart, re-derives the
remaining time from ``wall_deadline`` (epoch seconds; monotonic clock
values do not survive a restart).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from .settings import APP_SUPPORT_DIR


logger = logging.getLogger(__name__)

SNAPSHOT_PATH = APP_SUPPORT_DIR / "timer_state.json"


@dataclass
class TimerSnapshot:
    session_type: str
    subject: str
    initial_seconds: int
    remaining_seconds: int
    run_state: str                      # RunState value
    wall_deadline: float | None = None  # only while running
    session_start: str | None = None    # ISO timestamp, work sessions
    completed_sessions: int = 0
    round: int = 1


def save_snapshot(snapshot: TimerSnapshot, path: Path | None = None) -> None:
    path = path or SNAPSHOT_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(snapshot), indent=2) + "\n", encoding="utf-8")


def load_snapshot(path: Path | None = None) -> TimerSnapshot | None:
    """Return the stored snapshot, or ``None`` if absent or unreadable."""
    path = path or SNAPSHOT_PATH
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        valid_keys = {f.name for f in fields(TimerSnapshot)}
        return TimerSnapshot(**{k: v for k, v in data.items() if k in valid_keys})
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Discarding unreadable timer snapshot %s: %s", path, exc)
        return None


def clear_snapshot(path: Path | None = None) -> None:
    path = path or SNAPSHOT_PATH
    path.unlink(missing_ok=True)
