"""
Attendance Models

Athletes, training sessions, attendance check-ins and leave requests.
"""

import enum
from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, Text, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sportclub.db.base import Base


class SessionStatus(str, enum.Enum):
    """Status of a training session."""
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class CheckInMethod(str, enum.Enum):
    MANUAL = "manual"
    QR = "qr"
    AUTO = "auto"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Athlete(Base):
    """Athlete record linking an authenticated user to a club."""

    __tablename__ = "athletes"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    club_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)


class TrainingSession(Base):
    """A scheduled training session for a club."""

    __tablename__ = "training_sessions"

    club_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.SCHEDULED.value,
    )


class Attendance(Base):
    """Attendance record; one per athlete per session."""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("training_session_id", "athlete_id", name="uq_attendance_session_athlete"),
    )

    training_session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    athlete_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("athletes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    check_in_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    check_in_method: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class LeaveRequest(Base):
    """An athlete's request to be excused from a session."""

    __tablename__ = "leave_requests"

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    athlete_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("athletes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LeaveStatus.PENDING.value,
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
