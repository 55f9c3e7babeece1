"""Tests for the study-session host.

Covers: work/break cycle, focus-time recording (natural and manual
stops, Break subject), snapshot writes and restore after a restart,
auto-start, duration overrides, and collaborator failures.
"""

import json

import pytest

from studypulse.database.db import get_session
from studypulse.database.models import StudySession
from studypulse.notifications import TimerNotifier
from studypulse.service import SessionType, StudySessionService
from studypulse.settings import Settings
from studypulse.snapshot import TimerSnapshot, load_snapshot, save_snapshot
from studypulse.timer.engine import RunState

from helpers import SignalCollector, finish_run, poll_for


class FakeAlarm:
    def __init__(self):
        self.played: list[str] = []
        self.enabled = None
        self.volume = None
        self.stopped = 0

    def set_enabled(self, enabled):
        self.enabled = enabled

    def set_volume(self, level):
        self.volume = level

    def play(self, name):
        self.played.append(name)

    def stop(self):
        self.stopped += 1


def _rows():
    with get_session() as db:
        return db.query(StudySession).order_by(StudySession.id).all()


def _finish(service, clock):
    service.start()
    finish_run(service.engine, clock)


# ═══════════════════════════════════════════════════════════════════════════
#  BASICS
# ═══════════════════════════════════════════════════════════════════════════


class TestInitialState:

    def test_starts_idle_on_work(self, service, settings):
        assert service.run_state == RunState.IDLE
        assert service.session_type == SessionType.WORK
        assert service.remaining_seconds == settings.work_duration
        assert service.current_round == 1
        assert service.subject == "General"

    def test_start_runs_engine_and_marks_session_start(self, service):
        service.start()
        assert service.run_state == RunState.RUNNING
        assert service.session_start is not None

    def test_start_twice_keeps_deadline(self, service, clock):
        service.start()
        deadline = service.engine.deadline
        clock.advance(5)
        service.start()
        assert service.engine.deadline == deadline

    def test_pause_then_start_continues(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 10)
        service.pause()
        clock.advance(60)
        service.start()
        assert service.remaining_seconds == 25 * 60 - 10

    def test_toggle(self, service):
        service.toggle()
        assert service.run_state == RunState.RUNNING
        service.toggle()
        assert service.run_state == RunState.PAUSED

    def test_tick_forwarded(self, service, clock):
        c = SignalCollector()
        service.tick.connect(c)
        service.start()
        poll_for(service.engine, clock, 1)
        assert c.items == [25 * 60, 25 * 60 - 1]


# ═══════════════════════════════════════════════════════════════════════════
#  CYCLE
# ═══════════════════════════════════════════════════════════════════════════


class TestCycle:

    def test_work_then_short_break(self, service, clock, settings):
        _finish(service, clock)
        assert service.session_type == SessionType.SHORT_BREAK
        assert service.run_state == RunState.IDLE
        assert service.remaining_seconds == settings.short_break_duration

    def test_full_cycle_reaches_long_break(self, service, clock):
        for r in range(1, 5):
            assert service.current_round == r
            _finish(service, clock)  # work
            if r < 4:
                assert service.session_type == SessionType.SHORT_BREAK
            else:
                assert service.session_type == SessionType.LONG_BREAK
            _finish(service, clock)  # break
        assert service.current_round == 1
        assert service.session_type == SessionType.WORK
        assert service.completed_sessions == 4

    def test_skip_moves_to_next_type_without_recording(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 30)
        service.skip()
        assert service.session_type == SessionType.SHORT_BREAK
        assert service.run_state == RunState.IDLE
        assert _rows() == []

    def test_auto_start_breaks(self, engine, clock, wall, snapshot_path):
        svc = StudySessionService(
            settings=Settings(auto_start_breaks=True),
            engine=engine,
            snapshot_path=snapshot_path,
            wall_clock=wall,
        )
        _finish(svc, clock)
        assert svc.session_type == SessionType.SHORT_BREAK
        assert svc.run_state == RunState.RUNNING

    def test_no_auto_start_work_by_default(self, engine, clock, wall, snapshot_path):
        svc = StudySessionService(
            settings=Settings(auto_start_breaks=True),
            engine=engine,
            snapshot_path=snapshot_path,
            wall_clock=wall,
        )
        _finish(svc, clock)
        finish_run(engine, clock)  # break runs out on its own
        assert svc.session_type == SessionType.WORK
        assert svc.run_state == RunState.IDLE


# ═══════════════════════════════════════════════════════════════════════════
#  RECORDING
# ═══════════════════════════════════════════════════════════════════════════


class TestRecording:

    def test_natural_completion_records_full_duration(self, service, clock):
        service.select_subject("Math")
        _finish(service, clock)
        rows = _rows()
        assert len(rows) == 1
        assert rows[0].subject == "Math"
        assert rows[0].duration_seconds == 25 * 60
        assert rows[0].completed is True

    def test_pause_does_not_shrink_recorded_duration(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 5)
        service.pause()
        clock.advance(120)
        service.start()
        finish_run(service.engine, clock)
        assert _rows()[0].duration_seconds == 25 * 60

    def test_breaks_are_not_recorded(self, service, clock):
        _finish(service, clock)
        _finish(service, clock)
        assert len(_rows()) == 1

    def test_break_subject_is_not_recorded(self, service, clock):
        service.select_subject("break")
        _finish(service, clock)
        assert _rows() == []
        assert service.completed_sessions == 1

    def test_manual_complete_records_elapsed(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 90)
        service.complete_session()
        rows = _rows()
        assert len(rows) == 1
        assert rows[0].duration_seconds == 90
        assert rows[0].completed is False
        assert service.run_state == RunState.IDLE
        assert service.remaining_seconds == 25 * 60

    def test_manual_complete_under_a_second_is_dropped(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 0.5)
        service.complete_session()
        assert _rows() == []

    def test_reset_records_nothing(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 90)
        service.reset()
        assert _rows() == []
        assert service.session_start is None

    def test_study_time_signal(self, service, clock):
        c = SignalCollector()
        service.study_time_changed.connect(c)
        _finish(service, clock)
        assert c.last == 25 * 60

    def test_study_seconds_today_includes_live_session(self, service, clock):
        _finish(service, clock)
        _finish(service, clock)  # break
        service.start()
        poll_for(service.engine, clock, 60)
        assert service.study_seconds_today() == 25 * 60 + 60

    def test_session_completed_payload(self, service, clock):
        c = SignalCollector()
        service.session_completed.connect(c)
        service.select_subject("History")
        _finish(service, clock)
        data = c.last
        assert data["session_type"] == "work"
        assert data["subject"] == "History"
        assert data["duration_seconds"] == 25 * 60
        assert data["round_number"] == 1
        assert data["start_time"] is not None
        assert data["end_time"] is not None

    def test_no_db_writes_when_disabled(self, engine, clock, wall, snapshot_path):
        svc = StudySessionService(
            engine=engine, db_enabled=False,
            snapshot_path=snapshot_path, wall_clock=wall,
        )
        _finish(svc, clock)
        assert _rows() == []


# ═══════════════════════════════════════════════════════════════════════════
#  SUBJECTS / DURATIONS
# ═══════════════════════════════════════════════════════════════════════════


class TestConfiguration:

    def test_add_subject(self, service):
        assert service.add_subject("Physics") is True
        assert "Physics" in service.subjects

    @pytest.mark.parametrize("name", ["", "   ", "Math"])
    def test_add_subject_ignores_blank_and_duplicates(self, service, name):
        before = service.subjects
        assert service.add_subject(name) is False
        assert service.subjects == before

    def test_set_duration_applies_when_idle(self, service):
        service.set_duration(SessionType.WORK, 40 * 60)
        assert service.remaining_seconds == 40 * 60

    def test_set_duration_minimum(self, service):
        service.set_duration(SessionType.WORK, 5)
        assert service.duration_for(SessionType.WORK) == 60

    def test_set_duration_waits_while_running(self, service):
        service.start()
        service.set_duration(SessionType.WORK, 40 * 60)
        assert service.remaining_seconds == 25 * 60
        service.reset()
        assert service.remaining_seconds == 40 * 60

    def test_alarm_configured_from_settings(self, engine, snapshot_path):
        alarm = FakeAlarm()
        StudySessionService(
            settings=Settings(sound_enabled=False, sound_volume=30),
            engine=engine, alarm=alarm, snapshot_path=snapshot_path,
        )
        assert alarm.enabled is False
        assert alarm.volume == 30


# ═══════════════════════════════════════════════════════════════════════════
#  COLLABORATORS
# ═══════════════════════════════════════════════════════════════════════════


class TestCollaborators:

    def test_alarm_plays_on_completion_only(self, engine, clock, snapshot_path):
        alarm = FakeAlarm()
        svc = StudySessionService(engine=engine, alarm=alarm, snapshot_path=snapshot_path)
        svc.start()
        poll_for(engine, clock, 10)
        svc.pause()
        assert alarm.played == []
        svc.start()
        finish_run(engine, clock)
        assert alarm.played == ["work_complete"]
        _finish(svc, clock)
        assert alarm.played == ["work_complete", "break_complete"]

    @pytest.mark.parametrize("action", ["acknowledge", "start", "skip", "reset"])
    def test_alarm_rings_until_silenced(self, engine, clock, snapshot_path, action):
        alarm = FakeAlarm()
        svc = StudySessionService(engine=engine, alarm=alarm, snapshot_path=snapshot_path)
        _finish(svc, clock)
        assert svc.alarm_ringing is True
        assert alarm.stopped == 0
        getattr(svc, action)()
        assert svc.alarm_ringing is False
        assert alarm.stopped == 1

    def test_auto_started_break_keeps_alarm_ringing(self, engine, clock, snapshot_path):
        alarm = FakeAlarm()
        svc = StudySessionService(
            settings=Settings(auto_start_breaks=True),
            engine=engine,
            alarm=alarm,
            snapshot_path=snapshot_path,
        )
        _finish(svc, clock)
        assert svc.run_state == RunState.RUNNING
        assert svc.alarm_ringing is True
        assert alarm.stopped == 0

    def test_acknowledge_without_alarm_is_harmless(self, service, clock):
        _finish(service, clock)
        service.acknowledge()
        assert service.alarm_ringing is False

    def test_banners(self, service, clock):
        service.start()
        poll_for(service.engine, clock, 1)
        assert service.notifier.last_banner[1] == "Focusing... 24:59"
        service.pause()
        assert service.notifier.last_banner[1] == "Paused 24:59"
        service.start()
        finish_run(service.engine, clock)
        assert service.notifier.last_banner[0] == "Session complete!"

    def test_failing_sink_does_not_stop_timer(self, engine, clock, snapshot_path):
        def broken(title, body):
            raise RuntimeError("permission denied")

        svc = StudySessionService(
            engine=engine,
            notifier=TimerNotifier(sink=broken),
            snapshot_path=snapshot_path,
        )
        svc.start()
        poll_for(engine, clock, 3)
        assert svc.remaining_seconds == 50 * 60 - 3
        finish_run(engine, clock)
        assert svc.session_type == SessionType.SHORT_BREAK


# ═══════════════════════════════════════════════════════════════════════════
#  SNAPSHOT / RESTORE
# ═══════════════════════════════════════════════════════════════════════════


def _snapshot(**overrides):
    values = dict(
        session_type="work",
        subject="Science",
        initial_seconds=25 * 60,
        remaining_seconds=600,
        run_state="running",
        wall_deadline=None,
        session_start="2026-10-19T09:00:00",
        completed_sessions=2,
        round=3,
    )
    values.update(overrides)
    return TimerSnapshot(**values)


class TestSnapshot:

    def test_start_writes_wall_deadline(self, service, wall, snapshot_path):
        service.start()
        snap = load_snapshot(snapshot_path)
        assert snap.run_state == "running"
        assert snap.wall_deadline == pytest.approx(wall() + 25 * 60)

    def test_wall_deadline_keeps_sub_second_progress(
        self, service, clock, wall, snapshot_path
    ):
        service.start()
        clock.advance(0.4)
        service._save_snapshot()
        snap = load_snapshot(snapshot_path)
        assert snap.wall_deadline == pytest.approx(wall() + 25 * 60 - 0.4)

    def test_pause_writes_frozen_value(self, service, clock, snapshot_path):
        service.start()
        poll_for(service.engine, clock, 100)
        service.pause()
        snap = load_snapshot(snapshot_path)
        assert snap.run_state == "paused"
        assert snap.remaining_seconds == 25 * 60 - 100
        assert snap.wall_deadline is None

    def test_reset_and_completion_clear_snapshot(self, service, clock, snapshot_path):
        service.start()
        service.reset()
        assert not snapshot_path.exists()
        _finish(service, clock)
        assert not snapshot_path.exists()

    def test_disabled_snapshots_write_nothing(self, engine, snapshot_path):
        svc = StudySessionService(
            engine=engine, snapshot_enabled=False, snapshot_path=snapshot_path,
        )
        svc.start()
        assert not snapshot_path.exists()
        assert svc.restore() is False


class TestRestore:

    def test_nothing_to_restore(self, service):
        assert service.restore() is False

    def test_running_snapshot_resumes_with_remaining(self, service, wall, snapshot_path):
        save_snapshot(_snapshot(wall_deadline=wall() + 120), snapshot_path)
        assert service.restore() is True
        assert service.run_state == RunState.RUNNING
        assert service.remaining_seconds == 120
        assert service.subject == "Science"
        assert service.current_round == 3
        assert service.engine.initial_seconds == 25 * 60

    def test_running_snapshot_past_deadline_records_completion(
        self, service, wall, snapshot_path
    ):
        c = SignalCollector()
        service.session_completed.connect(c)
        save_snapshot(_snapshot(wall_deadline=wall() - 30), snapshot_path)

        assert service.restore() is True
        assert len(c) == 1
        rows = _rows()
        assert rows[0].subject == "Science"
        assert rows[0].duration_seconds == 25 * 60
        assert service.completed_sessions == 3
        assert service.session_type == SessionType.SHORT_BREAK
        assert service.run_state == RunState.IDLE
        assert not snapshot_path.exists()

    def test_running_restore_announces_remaining(self, service, wall, snapshot_path):
        c = SignalCollector()
        service.tick.connect(c)
        save_snapshot(_snapshot(wall_deadline=wall() + 120), snapshot_path)
        service.restore()
        assert c.last == 120
        assert service.notifier.last_banner[1] == "Focusing... 02:00"

    def test_paused_snapshot_restores_paused(self, service, clock, snapshot_path):
        save_snapshot(_snapshot(run_state="paused", remaining_seconds=300), snapshot_path)
        assert service.restore() is True
        assert service.run_state == RunState.PAUSED
        assert service.remaining_seconds == 300
        service.start()
        poll_for(service.engine, clock, 1)
        assert service.remaining_seconds == 299

    def test_idle_snapshot_is_discarded(self, service, snapshot_path):
        save_snapshot(_snapshot(run_state="idle"), snapshot_path)
        assert service.restore() is False
        assert not snapshot_path.exists()

    @pytest.mark.parametrize("overrides", [
        {"session_type": "nap"},
        {"run_state": "sleeping"},
        {"initial_seconds": 0},
        {"remaining_seconds": -4, "run_state": "paused"},
        {"wall_deadline": None},
        {"round": 0},
        {"completed_sessions": -1},
        {"subject": ""},
        {"session_start": "yesterday-ish"},
    ])
    def test_invalid_snapshot_is_discarded(self, service, wall, snapshot_path, overrides):
        values = dict(
            session_type="long_break",
            completed_sessions=7,
            wall_deadline=wall() + 120,
        )
        values.update(overrides)
        save_snapshot(_snapshot(**values), snapshot_path)
        assert service.restore() is False
        assert service.run_state == RunState.IDLE
        assert service.session_type == SessionType.WORK
        assert service.subject == "General"
        assert service.current_round == 1
        assert service.completed_sessions == 0
        assert service.remaining_seconds == 25 * 60
        assert not snapshot_path.exists()

    def test_corrupt_file_is_ignored(self, service, snapshot_path):
        snapshot_path.write_text("{not json", encoding="utf-8")
        assert service.restore() is False

    def test_snapshot_round_trip_through_json(self, snapshot_path):
        save_snapshot(_snapshot(), snapshot_path)
        data = json.loads(snapshot_path.read_text(encoding="utf-8"))
        assert data["subject"] == "Science"
        assert load_snapshot(snapshot_path) == _snapshot()
