"""
Access Service

Role and membership based access decisions for the protected areas.
Decisions are computed from the store on every call and fail closed.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sportclub.core.roles import (
    ATHLETE_OPEN_PATHS,
    DASHBOARD_PREFIX,
    DASHBOARD_ROOTS,
    LOGIN_PATH,
    PENDING_APPROVAL_PATH,
    MembershipStatus,
    Role,
    is_under,
)
from sportclub.db.models.membership import MembershipApplication, Profile, UserRole
from sportclub.monitoring.logging import get_logger
from sportclub.monitoring.metrics import access_decisions_counter
from sportclub.schemas.access import AccessDecision

logger = get_logger(__name__)

REASON_PENDING = "Your membership application is awaiting review"
REASON_REJECTED = "Your membership application was rejected"
REASON_SUSPENDED = "Your account has been suspended"
REASON_MUST_APPLY = "You must apply for membership to continue"
REASON_LOOKUP_FAILED = "Unable to verify access for this user"


class AccessService:
    """
    Access gate backed by ``user_roles``, ``profiles`` and
    ``membership_applications``.

    Access logic:
    1. Non-athletes (coach, admin) always have access
    2. Athletes have access only when membership_status is 'active'
    3. Any lookup error denies access
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role(self, user_id: str) -> Role:
        """Resolve the user's role. A missing role row means athlete."""
        stmt = select(UserRole.role).where(UserRole.user_id == user_id)
        value = (await self.session.execute(stmt)).scalar_one_or_none()
        return Role.parse(value)

    async def check_athlete_access(self, user_id: str) -> bool:
        """True when the user may use the dashboard features."""
        decision = await self.get_athlete_access_status(user_id)
        return decision.has_access

    async def get_athlete_access_status(self, user_id: str) -> AccessDecision:
        """Detailed access decision with the reason for a denial."""
        try:
            role = await self.get_role(user_id)
            if role is not Role.ATHLETE:
                decision = AccessDecision(
                    has_access=True,
                    membership_status=MembershipStatus.ACTIVE,
                )
            else:
                decision = await self._athlete_decision(user_id)
        except SQLAlchemyError as exc:
            logger.error("access_lookup_failed", user_id=user_id, error=str(exc))
            await self.session.rollback()
            decision = AccessDecision(
                has_access=False,
                membership_status=None,
                reason=REASON_LOOKUP_FAILED,
                redirect_path=PENDING_APPROVAL_PATH,
            )

        access_decisions_counter.labels(
            outcome="granted" if decision.has_access else "denied",
            membership_status=(
                decision.membership_status.value if decision.membership_status else "none"
            ),
        ).inc()
        return decision

    async def resolve_redirect(self, user_id: Optional[str], path: str) -> Optional[str]:
        """
        Decide where a page request should go instead, if anywhere.

        Returns None when the request may proceed to ``path``.
        """
        on_pending_page = is_under(path, PENDING_APPROVAL_PATH)
        if not (on_pending_page or is_under(path, DASHBOARD_PREFIX)):
            return None

        if user_id is None:
            return LOGIN_PATH

        try:
            role = await self.get_role(user_id)
        except SQLAlchemyError as exc:
            logger.error("access_lookup_failed", user_id=user_id, error=str(exc))
            await self.session.rollback()
            return LOGIN_PATH

        if role is not Role.ATHLETE:
            if on_pending_page:
                return DASHBOARD_PREFIX
            root = DASHBOARD_ROOTS[role]
            return None if is_under(path, root) else root

        decision = await self.get_athlete_access_status(user_id)
        root = DASHBOARD_ROOTS[Role.ATHLETE]

        if on_pending_page:
            return root if decision.has_access else None
        if not is_under(path, root):
            return root if decision.has_access else PENDING_APPROVAL_PATH
        if decision.has_access or any(is_under(path, p) for p in ATHLETE_OPEN_PATHS):
            return None
        return PENDING_APPROVAL_PATH

    async def _athlete_decision(self, user_id: str) -> AccessDecision:
        stmt = select(Profile.membership_status).where(Profile.id == user_id)
        raw_status = (await self.session.execute(stmt)).scalar_one_or_none()
        status = MembershipStatus.parse(raw_status)

        if status is MembershipStatus.ACTIVE:
            return AccessDecision(has_access=True, membership_status=status)

        if status is MembershipStatus.SUSPENDED:
            return AccessDecision(
                has_access=False,
                membership_status=status,
                reason=REASON_SUSPENDED,
                redirect_path=PENDING_APPROVAL_PATH,
            )

        if status is None:
            return AccessDecision(
                has_access=False,
                membership_status=None,
                reason=REASON_MUST_APPLY,
                redirect_path=PENDING_APPROVAL_PATH,
            )

        application = await self._latest_application(user_id)
        club_name = application.club.name if application and application.club else None

        if status is MembershipStatus.PENDING:
            return AccessDecision(
                has_access=False,
                membership_status=status,
                reason=REASON_PENDING,
                redirect_path=PENDING_APPROVAL_PATH,
                application_id=application.id if application else None,
                club_name=club_name,
            )

        return AccessDecision(
            has_access=False,
            membership_status=MembershipStatus.REJECTED,
            reason=REASON_REJECTED,
            redirect_path=PENDING_APPROVAL_PATH,
            rejection_reason=application.rejection_reason if application else None,
            club_name=club_name,
        )

    async def _latest_application(self, user_id: str) -> Optional[MembershipApplication]:
        stmt = (
            select(MembershipApplication)
            .where(MembershipApplication.user_id == user_id)
            .order_by(MembershipApplication.created_at.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalars().first()
