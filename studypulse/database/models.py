"""SQLAlchemy ORM models for StudyPulse."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class StudySession(Base):
    """One recorded stretch of focus time, tagged with its subject."""

    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject = Column(String(100), nullable=False, default="General")
    session_type = Column(String(20), nullable=False, default="work")  # work | short_break | long_break
    start_time = Column(DateTime, nullable=False, default=datetime.now)
    end_time = Column(DateTime, nullable=False, default=datetime.now)
    duration_seconds = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)  # False = stopped by hand

    def __repr__(self) -> str:
        return (
            f"<StudySession id={self.id} subject={self.subject} "
            f"duration={self.duration_seconds}s completed={self.completed}>"
        )
