"""
Roles and Capabilities

Closed set of user roles, athlete membership states and the capability table
that route guards consult instead of comparing role strings.
"""

import enum
from typing import Dict, FrozenSet, Optional


class Role(str, enum.Enum):
    """User role stored in ``user_roles.role``."""
    ADMIN = "admin"
    COACH = "coach"
    ATHLETE = "athlete"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Map a stored role to the enum; missing or unknown values are athletes."""
        try:
            return cls(value)
        except ValueError:
            return cls.ATHLETE


class MembershipStatus(str, enum.Enum):
    """Athlete membership workflow state stored in ``profiles.membership_status``."""
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MembershipStatus"]:
        """Map a stored status to the enum; missing or unknown values become None."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class Capability(str, enum.Enum):
    """Actions a role may perform."""
    MANAGE_USERS = "manage_users"
    MANAGE_CLUBS = "manage_clubs"
    MANAGE_SESSIONS = "manage_sessions"
    REVIEW_APPLICATIONS = "review_applications"
    REVIEW_LEAVE_REQUESTS = "review_leave_requests"
    CHECK_IN = "check_in"
    REQUEST_LEAVE = "request_leave"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.COACH: frozenset({
        Capability.MANAGE_SESSIONS,
        Capability.REVIEW_APPLICATIONS,
        Capability.REVIEW_LEAVE_REQUESTS,
    }),
    Role.ATHLETE: frozenset({
        Capability.CHECK_IN,
        Capability.REQUEST_LEAVE,
    }),
}

DASHBOARD_PREFIX = "/dashboard"
LOGIN_PATH = "/login"
PENDING_APPROVAL_PATH = "/pending-approval"

DASHBOARD_ROOTS: Dict[Role, str] = {
    Role.ADMIN: f"{DASHBOARD_PREFIX}/admin",
    Role.COACH: f"{DASHBOARD_PREFIX}/coach",
    Role.ATHLETE: f"{DASHBOARD_PREFIX}/athlete",
}

# Athlete pages reachable without an active membership
ATHLETE_OPEN_PATHS = (
    f"{DASHBOARD_PREFIX}/athlete/applications",
    f"{DASHBOARD_PREFIX}/athlete/profile",
)


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES[role]


def is_under(path: str, prefix: str) -> bool:
    """True when ``path`` equals ``prefix`` or is a sub-path of it."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")
