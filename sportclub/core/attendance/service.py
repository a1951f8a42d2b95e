"""
Attendance Service

Athlete check-in and leave requests for training sessions.
"""

from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sportclub.core.errors import ActionError, ErrorCode
from sportclub.db.base import utcnow
from sportclub.db.models.attendance import (
    Athlete,
    Attendance,
    AttendanceStatus,
    CheckInMethod,
    LeaveRequest,
    LeaveStatus,
    SessionStatus,
    TrainingSession,
)
from sportclub.monitoring.logging import get_logger

logger = get_logger(__name__)


class AttendanceService:
    """Attendance actions performed by an athlete on their own behalf."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def check_in(
        self,
        user_id: str,
        session_id: str,
        method: CheckInMethod = CheckInMethod.MANUAL,
    ) -> Dict[str, Any]:
        """
        Record the athlete as present at a training session.

        Raises:
            ActionError: unknown athlete or session, cancelled session, or
                the athlete already checked in
        """
        athlete = await self._get_athlete(user_id)
        training = await self._get_open_session(athlete, session_id)

        existing = await self.session.execute(
            select(Attendance.id).where(
                Attendance.training_session_id == training.id,
                Attendance.athlete_id == athlete.id,
            )
        )
        if existing.first() is not None:
            raise ActionError(ErrorCode.ALREADY_CHECKED_IN, "Already checked in to this session")

        attendance = Attendance(
            training_session_id=training.id,
            athlete_id=athlete.id,
            status=AttendanceStatus.PRESENT.value,
            check_in_time=utcnow(),
            check_in_method=CheckInMethod(method).value,
        )
        self.session.add(attendance)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ActionError(
                ErrorCode.ALREADY_CHECKED_IN,
                "Already checked in to this session",
            ) from exc

        logger.info("athlete_checked_in", athlete_id=athlete.id, session_id=training.id)
        return {"attendance": _attendance_row(attendance)}

    async def request_leave(
        self,
        user_id: str,
        session_id: str,
        reason: str,
    ) -> Dict[str, Any]:
        """
        Submit a pending leave request for a training session.

        Raises:
            ActionError: unknown athlete or session, cancelled session,
                athlete already checked in, or an open request exists
        """
        athlete = await self._get_athlete(user_id)
        training = await self._get_open_session(athlete, session_id)

        checked_in = await self.session.execute(
            select(Attendance.id).where(
                Attendance.training_session_id == training.id,
                Attendance.athlete_id == athlete.id,
            )
        )
        if checked_in.first() is not None:
            raise ActionError(
                ErrorCode.ALREADY_CHECKED_IN,
                "Cannot request leave after checking in",
            )

        open_request = await self.session.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.session_id == training.id,
                LeaveRequest.athlete_id == athlete.id,
                LeaveRequest.status != LeaveStatus.REJECTED.value,
            )
        )
        if open_request.first() is not None:
            raise ActionError(
                ErrorCode.LEAVE_ALREADY_REQUESTED,
                "A leave request for this session already exists",
            )

        leave = LeaveRequest(
            session_id=training.id,
            athlete_id=athlete.id,
            reason=reason,
            status=LeaveStatus.PENDING.value,
            created_at=utcnow(),
        )
        self.session.add(leave)
        await self.session.commit()

        logger.info("leave_requested", athlete_id=athlete.id, session_id=training.id)
        return {"leaveRequest": _leave_row(leave)}

    async def _get_athlete(self, user_id: str) -> Athlete:
        result = await self.session.execute(select(Athlete).where(Athlete.user_id == user_id))
        athlete = result.scalar_one_or_none()
        if athlete is None:
            raise ActionError(ErrorCode.ATHLETE_NOT_FOUND, "No athlete record for this user")
        return athlete

    async def _get_open_session(self, athlete: Athlete, session_id: str) -> TrainingSession:
        training = await self.session.get(TrainingSession, session_id)
        # Sessions of other clubs are invisible to the athlete
        if training is None or training.club_id != athlete.club_id:
            raise ActionError(ErrorCode.SESSION_NOT_FOUND, "Training session not found")
        if training.status == SessionStatus.CANCELLED.value:
            raise ActionError(ErrorCode.SESSION_CANCELLED, "Training session was cancelled")
        return training


def _attendance_row(attendance: Attendance) -> Dict[str, Any]:
    return {
        "id": attendance.id,
        "training_session_id": attendance.training_session_id,
        "athlete_id": attendance.athlete_id,
        "status": attendance.status,
        "check_in_time": attendance.check_in_time,
        "check_in_method": attendance.check_in_method,
    }


def _leave_row(leave: LeaveRequest) -> Dict[str, Any]:
    return {
        "id": leave.id,
        "session_id": leave.session_id,
        "athlete_id": leave.athlete_id,
        "reason": leave.reason,
        "status": leave.status,
        "created_at": leave.created_at,
    }
