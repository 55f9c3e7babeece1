"""Study-session host around the countdown engine.

The service owns one :class:`CountdownTimerEngine` and everything that
reacts to it: the work/break cycle, the selected subject, the durable
snapshot, study-history recording, the completion alarm and the
progress banner.  Observers connect to the service's signals instead of
reading timer state directly.

Cycle
-----
WORK → SHORT_BREAK, or LONG_BREAK after ``rounds_per_cycle`` work
sessions.  Any break → WORK; a long break starts a new cycle.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable

from PyQt6.QtCore import QObject, pyqtSignal
from sqlalchemy.exc import SQLAlchemyError

from .audio.sounds import AlarmPlayer, sound_for_session
from .database import history
from .notifications import TimerNotifier
from .settings import BREAK_SUBJECT, Settings
from .snapshot import TimerSnapshot, clear_snapshot, load_snapshot, save_snapshot
from .timer.engine import CountdownTimerEngine, RunState


logger = logging.getLogger(__name__)


class SessionType(Enum):
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


MIN_DURATION = 60


def _require_int(name: str, value, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")


def _parse_snapshot(
    snap: TimerSnapshot,
) -> tuple[SessionType, RunState, datetime | None]:
    """Check every field of *snap*; raise ``TypeError``/``ValueError``."""
    session_type = SessionType(snap.session_type)
    run_state = RunState(snap.run_state)
    if not isinstance(snap.subject, str) or not snap.subject.strip():
        raise ValueError(f"invalid subject {snap.subject!r}")
    _require_int("initial_seconds", snap.initial_seconds, 1)
    _require_int("remaining_seconds", snap.remaining_seconds, 0)
    _require_int("completed_sessions", snap.completed_sessions, 0)
    _require_int("round", snap.round, 1)
    if run_state == RunState.RUNNING and (
        isinstance(snap.wall_deadline, bool)
        or not isinstance(snap.wall_deadline, (int, float))
    ):
        raise ValueError("running snapshot without a deadline")
    session_start = (
        datetime.fromisoformat(snap.session_start) if snap.session_start else None
    )
    return session_type, run_state, session_start


class StudySessionService(QObject):
    """Drives work and break sessions and records focus time.

    Signals
    -------
    tick(remaining_seconds: int)
        Forwarded from the engine.
    state_changed(new_state: RunState)
        Forwarded from the engine.
    session_completed(data: dict)
        Emitted when a session runs out, including one that ran out
        while the process was not alive.  Keys: ``session_type``,
        ``subject``, ``duration_seconds``, ``start_time``, ``end_time``,
        ``round_number``, ``completed_sessions``.
    study_time_changed(total_seconds: int)
        Today's recorded focus seconds, after each recording.
    """

    tick = pyqtSignal(int)
    state_changed = pyqtSignal(object)
    session_completed = pyqtSignal(object)
    study_time_changed = pyqtSignal(int)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        settings: Settings | None = None,
        engine: CountdownTimerEngine | None = None,
        notifier: TimerNotifier | None = None,
        alarm: AlarmPlayer | None = None,
        db_enabled: bool = True,
        snapshot_enabled: bool = True,
        snapshot_path: Path | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(parent)
        self._settings = settings or Settings()
        s = self._settings

        # ── collaborators ─────────────────────────────────────────────
        self._engine = engine or CountdownTimerEngine(
            self, poll_interval_ms=s.poll_interval_ms
        )
        self._notifier = notifier or TimerNotifier(
            self, enabled=s.notifications_enabled
        )
        self._alarm = alarm
        if self._alarm is not None:
            self._alarm.set_enabled(s.sound_enabled)
            self._alarm.set_volume(s.sound_volume)
        self._db_enabled = db_enabled
        self._snapshot_enabled = snapshot_enabled
        self._snapshot_path = snapshot_path
        self._wall_clock = wall_clock

        # ── cycle / session state ─────────────────────────────────────
        self._durations: dict[SessionType, int] = {
            SessionType.WORK: max(MIN_DURATION, s.work_duration),
            SessionType.SHORT_BREAK: max(MIN_DURATION, s.short_break_duration),
            SessionType.LONG_BREAK: max(MIN_DURATION, s.long_break_duration),
        }
        self._session_type = SessionType.WORK
        self._round = 1
        self._completed_sessions = 0
        self._subject = s.selected_subject
        self._subjects: list[str] = list(s.subjects)
        if self._subject not in self._subjects:
            self._subjects.append(self._subject)
        self._session_start: datetime | None = None
        self._alarm_ringing = False

        self._engine.tick.connect(self._on_engine_tick)
        self._engine.state_changed.connect(self.state_changed)
        self._engine.completed.connect(self._on_engine_completed)
        self._engine.reset(self._durations[self._session_type])

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def engine(self) -> CountdownTimerEngine:
        return self._engine

    @property
    def notifier(self) -> TimerNotifier:
        return self._notifier

    @property
    def run_state(self) -> RunState:
        return self._engine.run_state

    @property
    def session_type(self) -> SessionType:
        """The session type currently active (or next, when idle)."""
        return self._session_type

    @property
    def is_break(self) -> bool:
        return self._session_type != SessionType.WORK

    @property
    def remaining_seconds(self) -> int:
        return self._engine.sample_remaining()

    @property
    def current_round(self) -> int:
        return self._round

    @property
    def completed_sessions(self) -> int:
        return self._completed_sessions

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def subjects(self) -> list[str]:
        return list(self._subjects)

    @property
    def alarm_ringing(self) -> bool:
        return self._alarm_ringing

    @property
    def session_start(self) -> datetime | None:
        return self._session_start

    def duration_for(self, session_type: SessionType) -> int:
        return self._durations[session_type]

    def set_duration(self, session_type: SessionType, seconds: int) -> None:
        """Override a duration (minimum 60 s).

        Takes effect on the clock only while nothing is counting.
        """
        self._durations[session_type] = max(MIN_DURATION, int(seconds))
        if (
            session_type == self._session_type
            and self._engine.run_state in (RunState.IDLE, RunState.COMPLETED)
        ):
            self._engine.reset(self._durations[session_type])

    def select_subject(self, subject: str) -> None:
        self._subject = subject
        if subject not in self._subjects:
            self._subjects.append(subject)

    def add_subject(self, subject: str) -> bool:
        """Add *subject* to the list.  Blank or duplicate names are ignored."""
        subject = subject.strip()
        if not subject or subject in self._subjects:
            return False
        self._subjects.append(subject)
        return True

    def elapsed_seconds(self) -> int:
        """Seconds already counted off the current session."""
        return max(0, self._engine.initial_seconds - self._engine.sample_remaining())

    def study_seconds_today(self) -> int:
        """Recorded focus time today plus the work session in progress."""
        total = history.today_total_seconds() if self._db_enabled else 0
        if self._counts_as_study() and self._session_start is not None:
            total += self.elapsed_seconds()
        return total

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(self) -> None:
        """Start the current session, or continue a paused one."""
        self.acknowledge()
        self._begin()

    def _begin(self) -> None:
        state = self._engine.run_state
        if state == RunState.RUNNING:
            return
        if state == RunState.PAUSED:
            self._engine.resume()
        else:
            self._engine.start(self._durations[self._session_type])

        if self._session_start is None and self._session_type == SessionType.WORK:
            self._session_start = datetime.now()
        logger.info(
            "%s session running (%ss left, subject=%s)",
            self._session_type.value,
            self._engine.remaining_seconds,
            self._subject,
        )
        self._save_snapshot()

    def pause(self) -> None:
        if self._engine.run_state != RunState.RUNNING:
            return
        self._engine.pause()
        self._notifier.show_progress(
            self._engine.remaining_seconds, running=False, is_break=self.is_break
        )
        self._save_snapshot()

    def toggle(self) -> None:
        if self._engine.is_running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        """Cancel the current session without recording anything."""
        self.acknowledge()
        self._session_start = None
        self._engine.reset(self._durations[self._session_type])
        self._discard_snapshot()

    def complete_session(self) -> None:
        """Stop by hand, keeping the focus time studied so far."""
        if self._session_type == SessionType.WORK and self._session_start is not None:
            self._record(
                duration_seconds=self.elapsed_seconds(),
                start_time=self._session_start,
                completed=False,
            )
        self.reset()

    def skip(self) -> None:
        """Abandon the current session and move to the next type."""
        self.acknowledge()
        self._session_start = None
        self._advance()
        self._engine.reset(self._durations[self._session_type])
        self._discard_snapshot()

    def acknowledge(self) -> None:
        """Silence the completion alarm, which rings until this is called."""
        if not self._alarm_ringing:
            return
        self._alarm_ringing = False
        if self._alarm is not None:
            self._alarm.stop()
        logger.debug("Alarm acknowledged")

    def restore(self) -> bool:
        """Pick up a session saved by an earlier process.

        Returns ``True`` when a session was restored or finished.  The
        snapshot is checked in full before any state changes, so a bad
        file leaves the service exactly as it was.
        """
        if not self._snapshot_enabled:
            return False
        snap = load_snapshot(self._snapshot_path)
        if snap is None:
            return False
        try:
            session_type, run_state, session_start = _parse_snapshot(snap)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding invalid timer snapshot: %s", exc)
            self._discard_snapshot()
            return False
        if run_state not in (RunState.RUNNING, RunState.PAUSED):
            self._discard_snapshot()
            return False

        self.acknowledge()
        self._session_type = session_type
        self.select_subject(snap.subject)
        self._completed_sessions = snap.completed_sessions
        self._round = snap.round
        self._session_start = session_start
        self._engine.reset(snap.initial_seconds)

        if run_state == RunState.PAUSED:
            self._engine.resume(snap.remaining_seconds)
            self._engine.pause()
            remaining = self._engine.remaining_seconds
            self.tick.emit(remaining)
            self._notifier.show_progress(remaining, running=False, is_break=self.is_break)
            return True

        remaining = math.ceil(snap.wall_deadline - self._wall_clock())
        if remaining <= 0:
            logger.info("Session finished while the app was closed")
            self._finish_session(
                end_time=datetime.fromtimestamp(snap.wall_deadline)
            )
        else:
            self._engine.resume(remaining)
            self.tick.emit(remaining)
            self._notifier.show_progress(remaining, running=True, is_break=self.is_break)
        return True

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — engine slots
    # ══════════════════════════════════════════════════════════════════

    def _on_engine_tick(self, seconds: int) -> None:
        self.tick.emit(seconds)
        if self._engine.is_running:
            self._notifier.show_progress(seconds, running=True, is_break=self.is_break)

    def _on_engine_completed(self) -> None:
        self._finish_session(end_time=datetime.now())

    def _finish_session(self, *, end_time: datetime) -> None:
        completed_type = self._session_type
        duration = self._engine.initial_seconds
        start_time = self._session_start

        if completed_type == SessionType.WORK:
            self._completed_sessions += 1
            if start_time is not None:
                self._record(
                    duration_seconds=duration,
                    start_time=start_time,
                    end_time=end_time,
                    completed=True,
                )

        self.session_completed.emit({
            "session_type": completed_type.value,
            "subject": self._subject,
            "duration_seconds": duration,
            "start_time": start_time,
            "end_time": end_time,
            "round_number": self._round,
            "completed_sessions": self._completed_sessions,
        })
        logger.info("%s session complete", completed_type.value)

        if self._alarm is not None:
            self._alarm.play(sound_for_session(completed_type.value))
            self._alarm_ringing = True
        self._notifier.show_completed(completed_type.value)
        self._discard_snapshot()

        # ── advance cycle ─────────────────────────────────────────────
        self._session_start = None
        self._advance()
        self._engine.reset(self._durations[self._session_type])

        s = self._settings
        if self.is_break and s.auto_start_breaks:
            self._begin()
        elif not self.is_break and s.auto_start_work:
            self._begin()

    def _advance(self) -> None:
        """Move ``session_type`` and ``round`` to the next position."""
        if self._session_type == SessionType.WORK:
            if self._round >= self._settings.rounds_per_cycle:
                self._session_type = SessionType.LONG_BREAK
            else:
                self._session_type = SessionType.SHORT_BREAK
        else:
            if self._session_type == SessionType.LONG_BREAK:
                self._round = 1
            else:
                self._round += 1
            self._session_type = SessionType.WORK

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — persistence
    # ══════════════════════════════════════════════════════════════════

    def _counts_as_study(self) -> bool:
        return (
            self._session_type == SessionType.WORK
            and self._subject.lower() != BREAK_SUBJECT.lower()
        )

    def _record(
        self,
        *,
        duration_seconds: int,
        start_time: datetime,
        completed: bool,
        end_time: datetime | None = None,
    ) -> None:
        if not self._counts_as_study():
            logger.debug("Not recording %r as study time", self._subject)
            return
        if duration_seconds < 1 or not self._db_enabled:
            return
        try:
            history.record_study_session(
                subject=self._subject,
                duration_seconds=duration_seconds,
                start_time=start_time,
                end_time=end_time,
                session_type=self._session_type.value,
                completed=completed,
            )
            total = history.today_total_seconds()
        except SQLAlchemyError:
            logger.exception("Could not record %ss of %s", duration_seconds, self._subject)
            return
        logger.info("Recorded %ss of %s", duration_seconds, self._subject)
        self.study_time_changed.emit(total)

    def _save_snapshot(self) -> None:
        if not self._snapshot_enabled:
            return
        running = self._engine.is_running
        remaining = self._engine.sample_remaining()
        snap = TimerSnapshot(
            session_type=self._session_type.value,
            subject=self._subject,
            initial_seconds=self._engine.initial_seconds,
            remaining_seconds=remaining,
            run_state=self._engine.run_state.value,
            wall_deadline=(
                self._wall_clock() + self._engine.seconds_left() if running else None
            ),
            session_start=(
                self._session_start.isoformat() if self._session_start else None
            ),
            completed_sessions=self._completed_sessions,
            round=self._round,
        )
        try:
            save_snapshot(snap, self._snapshot_path)
        except OSError:
            logger.exception("Could not save timer snapshot")

    def _discard_snapshot(self) -> None:
        if not self._snapshot_enabled:
            return
        try:
            clear_snapshot(self._snapshot_path)
        except OSError:
            logger.exception("Could not clear timer snapshot")
