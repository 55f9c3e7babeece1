"""Application settings with JSON persistence.

Settings are stored at:
    ~/Library/Application Support/StudyPulse/settings.json

Usage::

    settings = load_settings()
    settings.work_duration = 45 * 60
    save_settings(settings)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path


logger = logging.getLogger(__name__)

APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "StudyPulse"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"

DEFAULT_SUBJECTS = ["General", "Math", "Science", "English", "History"]
BREAK_SUBJECT = "Break"


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer ─────────────────────────────────────────────────────────
    work_duration: int = 50 * 60           # seconds
    short_break_duration: int = 10 * 60
    long_break_duration: int = 15 * 60
    rounds_per_cycle: int = 4
    auto_start_breaks: bool = False
    auto_start_work: bool = False
    poll_interval_ms: int = 100

    # ── subjects ──────────────────────────────────────────────────────
    selected_subject: str = "General"
    subjects: list[str] = field(default_factory=lambda: list(DEFAULT_SUBJECTS))

    # ── audio ─────────────────────────────────────────────────────────
    sound_enabled: bool = True
    sound_volume: int = 70                 # 0-100

    # ── notifications ─────────────────────────────────────────────────
    notifications_enabled: bool = True


def load_settings() -> Settings:
    """Load settings from disk, falling back to defaults."""
    if not SETTINGS_PATH.exists():
        return Settings()
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
        # Only use keys that exist in the dataclass
        valid_keys = {f.name for f in fields(Settings)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return Settings(**filtered)
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable settings at %s: %s", SETTINGS_PATH, exc)
        return Settings()


def save_settings(settings: Settings) -> None:
    """Write settings to disk as JSON."""
    APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
