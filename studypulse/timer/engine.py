"""Deadline-based countdown engine for StudyPulse.

States
------
IDLE        Configured but not counting (after construction or reset).
RUNNING     Counting down toward an absolute deadline.
PAUSED      Frozen at the exact remaining time of the pause instant.
COMPLETED   Deadline reached; needs start() or reset() to reuse.

Transitions
-----------
IDLE → RUNNING          (start / resume)
RUNNING → PAUSED        (pause)
PAUSED → RUNNING        (resume)
RUNNING → COMPLETED     (deadline reached)
Any → IDLE              (reset)
Any → RUNNING           (start, tears down the previous run)

Timing
------
The poll loop runs every ``poll_interval_ms`` (100 ms by default), much
finer than the one-second events it emits.  Remaining time is always
recomputed as ``ceil(deadline - now)``; nothing is decremented per
callback, so delayed or coalesced timer callbacks cannot make the
reported time drift.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal


logger = logging.getLogger(__name__)


# ── enums ─────────────────────────────────────────────────────────────────


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


# ── constants ─────────────────────────────────────────────────────────────

POLL_INTERVAL_MS = 100
NOTHING_EMITTED = -1


# ── state ─────────────────────────────────────────────────────────────────


@dataclass
class TimerSession:
    """The single state-bearing record owned by an engine."""

    remaining_seconds: int = 0
    initial_seconds: int = 0
    deadline: float | None = None
    run_state: RunState = RunState.IDLE
    last_emitted_second: int = NOTHING_EMITTED


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(
            f"{name} must be an integer, got {type(value).__name__}"
        )
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


# ── engine ────────────────────────────────────────────────────────────────


class CountdownTimerEngine(QObject):
    """One drift-corrected countdown driven by a ``QTimer`` poll loop.

    Signals
    -------
    tick(seconds_remaining: int)
        Emitted once per distinct whole-second value, strictly
        decreasing within a run.  Also emitted once by start() and
        reset() carrying the configured duration.
    completed()
        Emitted exactly once per run when the deadline passes.  No
        ``tick(0)`` precedes it.
    state_changed(new_state: RunState)
        Emitted on every state transition.
    """

    tick = pyqtSignal(int)
    completed = pyqtSignal()
    state_changed = pyqtSignal(object)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(parent)
        self._clock = clock
        self._session = TimerSession()

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(poll_interval_ms)
        self._poll_timer.timeout.connect(self._on_poll)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def session(self) -> TimerSession:
        """A copy of the current session state."""
        return replace(self._session)

    @property
    def run_state(self) -> RunState:
        return self._session.run_state

    @property
    def remaining_seconds(self) -> int:
        """Remaining seconds as of the last command or poll."""
        return self._session.remaining_seconds

    @property
    def initial_seconds(self) -> int:
        return self._session.initial_seconds

    @property
    def deadline(self) -> float | None:
        """Clock instant of completion, ``None`` unless running."""
        return self._session.deadline

    @property
    def is_running(self) -> bool:
        return self._session.run_state == RunState.RUNNING

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_timer.interval()

    @property
    def percent_complete(self) -> float:
        """0.0 → 1.0 progress through the current run."""
        initial = self._session.initial_seconds
        if initial <= 0:
            return 0.0
        elapsed = initial - self._session.remaining_seconds
        return max(0.0, min(1.0, elapsed / initial))

    def sample_remaining(self) -> int:
        """Exact remaining seconds right now, without emitting anything."""
        if self._session.run_state == RunState.RUNNING:
            return self._seconds_until_deadline()
        return self._session.remaining_seconds

    def seconds_left(self) -> float:
        """Unrounded time to the deadline; the cached value when not running."""
        if self._session.run_state == RunState.RUNNING:
            return max(0.0, self._session.deadline - self._clock())
        return float(self._session.remaining_seconds)

    # ══════════════════════════════════════════════════════════════════
    #  COMMANDS
    # ══════════════════════════════════════════════════════════════════

    def start(self, initial_seconds: int) -> None:
        """Begin a fresh run of *initial_seconds*.

        Any run in progress is torn down first, so calling this while
        running restarts cleanly.
        """
        _require_positive("initial_seconds", initial_seconds)
        self._poll_timer.stop()

        s = self._session
        s.initial_seconds = initial_seconds
        s.remaining_seconds = initial_seconds
        s.deadline = self._clock() + initial_seconds
        s.last_emitted_second = initial_seconds

        self._set_state(RunState.RUNNING)
        self.tick.emit(initial_seconds)
        self._poll_timer.start()

    def pause(self) -> None:
        """Freeze the countdown.  No-op unless running."""
        if self._session.run_state != RunState.RUNNING:
            return
        self._poll_timer.stop()
        self._session.remaining_seconds = self._seconds_until_deadline()
        self._session.deadline = None
        self._set_state(RunState.PAUSED)

    def resume(self, remaining_override: int | None = None) -> None:
        """Continue counting from the frozen value or *remaining_override*.

        Ignored while running or after completion.  Hosts recovering
        from a suspended process pass the remaining time they derived
        from their own durable snapshot.
        """
        if self._session.run_state in (RunState.RUNNING, RunState.COMPLETED):
            return
        if remaining_override is not None:
            if isinstance(remaining_override, bool) or not isinstance(
                remaining_override, int
            ):
                raise TypeError(
                    "remaining_override must be an integer, got "
                    f"{type(remaining_override).__name__}"
                )
            if remaining_override < 0:
                raise ValueError(
                    "remaining_override must be non-negative, "
                    f"got {remaining_override}"
                )
            self._session.remaining_seconds = remaining_override

        s = self._session
        s.deadline = self._clock() + s.remaining_seconds
        s.last_emitted_second = s.remaining_seconds

        self._set_state(RunState.RUNNING)
        self._poll_timer.start()

    def reset(self, initial_seconds: int) -> None:
        """Cancel any run and reconfigure for *initial_seconds* (IDLE)."""
        _require_positive("initial_seconds", initial_seconds)
        self._poll_timer.stop()

        s = self._session
        s.initial_seconds = initial_seconds
        s.remaining_seconds = initial_seconds
        s.deadline = None
        s.last_emitted_second = NOTHING_EMITTED

        self._set_state(RunState.IDLE)
        self.tick.emit(initial_seconds)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — poll loop
    # ══════════════════════════════════════════════════════════════════

    def _on_poll(self) -> None:
        s = self._session
        # A timeout queued before stop() can still arrive.
        if s.run_state != RunState.RUNNING or s.deadline is None:
            return

        diff = s.deadline - self._clock()
        if diff <= 0:
            self._poll_timer.stop()
            s.remaining_seconds = 0
            s.deadline = None
            self._set_state(RunState.COMPLETED)
            self.completed.emit()
            return

        seconds_left = math.ceil(diff)
        s.remaining_seconds = seconds_left
        if seconds_left != s.last_emitted_second:
            s.last_emitted_second = seconds_left
            self.tick.emit(seconds_left)

    def _seconds_until_deadline(self) -> int:
        if self._session.deadline is None:
            return self._session.remaining_seconds
        return max(0, math.ceil(self._session.deadline - self._clock()))

    def _set_state(self, new_state: RunState) -> None:
        old_state = self._session.run_state
        self._session.run_state = new_state
        logger.debug(
            "timer %s -> %s (remaining=%ss)",
            old_state.value,
            new_state.value,
            self._session.remaining_seconds,
        )
        self.state_changed.emit(new_state)
