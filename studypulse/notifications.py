"""Banner text for the running timer.

The notifier turns engine events into a ``(title, body)`` pair and hands
it to whatever surface the host has (tray icon, terminal, OS toast).
Delivery problems stay here: a failing sink is logged and the timer
carries on.
"""

from __future__ import annotations

import logging
from typing import Callable

from PyQt6.QtCore import QObject, pyqtSignal


logger = logging.getLogger(__name__)

TITLE = "Pomodoro Timer"

_COMPLETION_MESSAGES = {
    "work": ("Session complete!", "Great focus. Time for a break."),
    "short_break": ("Break over", "Ready for the next session?"),
    "long_break": ("Break over", "Cycle finished. Ready to start fresh?"),
}


def format_clock(seconds: int) -> str:
    """``MM:SS``; minutes keep growing past 59."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_hours(seconds: int) -> str:
    """``HH:MM:SS`` for accumulated study time."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    return f"{h:02d}:{rem // 60:02d}:{rem % 60:02d}"


class TimerNotifier(QObject):
    """Renders timer progress into a user-visible banner."""

    banner_changed = pyqtSignal(str, str)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        sink: Callable[[str, str], None] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(parent)
        self._sink = sink
        self._enabled = enabled
        self._last: tuple[str, str] | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @property
    def last_banner(self) -> tuple[str, str] | None:
        return self._last

    def show_progress(self, seconds: int, *, running: bool, is_break: bool = False) -> None:
        if not running:
            status = "Paused"
        elif is_break:
            status = "Break"
        else:
            status = "Focusing..."
        self._publish(TITLE, f"{status} {format_clock(seconds)}")

    def show_completed(self, session_type: str) -> None:
        title, body = _COMPLETION_MESSAGES.get(
            session_type, _COMPLETION_MESSAGES["work"]
        )
        self._publish(title, body)

    def _publish(self, title: str, body: str) -> None:
        if not self._enabled:
            return
        self._last = (title, body)
        self.banner_changed.emit(title, body)
        if self._sink is None:
            return
        try:
            self._sink(title, body)
        except Exception:
            logger.exception("Notification sink failed for %r", body)
