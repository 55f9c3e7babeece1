"""Study-history queries.

Thin helpers over :class:`StudySession` so the service and CLI never
build queries themselves.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from .db import get_session
from .models import StudySession


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def record_study_session(
    *,
    subject: str,
    duration_seconds: int,
    start_time: datetime,
    end_time: datetime | None = None,
    session_type: str = "work",
    completed: bool = True,
) -> int:
    """Persist one focus session and return its row id."""
    with get_session() as db:
        record = StudySession(
            subject=subject,
            session_type=session_type,
            start_time=start_time,
            end_time=end_time or datetime.now(),
            duration_seconds=max(0, duration_seconds),
            completed=completed,
        )
        db.add(record)
        db.flush()
        return record.id


def today_total_seconds(today: date | None = None) -> int:
    """Total focus seconds whose session started on *today*."""
    start, end = _day_bounds(today or date.today())
    with get_session() as db:
        total = (
            db.query(func.coalesce(func.sum(StudySession.duration_seconds), 0))
            .filter(StudySession.start_time >= start)
            .filter(StudySession.start_time < end)
            .scalar()
        )
    return int(total)


def totals_by_subject(day: date | None = None) -> dict[str, int]:
    """``{subject: seconds}`` for *day*, largest first."""
    start, end = _day_bounds(day or date.today())
    with get_session() as db:
        rows = (
            db.query(
                StudySession.subject,
                func.sum(StudySession.duration_seconds),
            )
            .filter(StudySession.start_time >= start)
            .filter(StudySession.start_time < end)
            .group_by(StudySession.subject)
            .all()
        )
    totals = {subject: int(seconds or 0) for subject, seconds in rows}
    return dict(sorted(totals.items(), key=lambda kv: kv[1], reverse=True))


def recent_sessions(limit: int = 10) -> list[StudySession]:
    """Most recent sessions first."""
    with get_session() as db:
        return (
            db.query(StudySession)
            .order_by(StudySession.start_time.desc(), StudySession.id.desc())
            .limit(limit)
            .all()
        )
