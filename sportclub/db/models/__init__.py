"""Database Models Package"""

from sportclub.db.models.idempotency import IdempotencyRecord, IdempotencyStatus
from sportclub.db.models.membership import UserRole, Profile, Club, MembershipApplication
from sportclub.db.models.attendance import (
    Athlete,
    TrainingSession,
    SessionStatus,
    Attendance,
    AttendanceStatus,
    CheckInMethod,
    LeaveRequest,
    LeaveStatus,
)

__all__ = [
    "IdempotencyRecord",
    "IdempotencyStatus",
    "UserRole",
    "Profile",
    "Club",
    "MembershipApplication",
    "Athlete",
    "TrainingSession",
    "SessionStatus",
    "Attendance",
    "AttendanceStatus",
    "CheckInMethod",
    "LeaveRequest",
    "LeaveStatus",
]
