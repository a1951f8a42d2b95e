"""
Membership Models

Role, profile, club and membership application tables consulted by the
access gate.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sportclub.db.base import Base
from sportclub.core.roles import Role


class UserRole(Base):
    """Role assignment for an authenticated user (one row per user)."""

    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.ATHLETE.value)

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role={self.role})>"


class Profile(Base):
    """
    User profile.

    ``id`` is the authenticated user id; ``membership_status`` is the single
    source of truth for athlete dashboard access.
    """

    __tablename__ = "profiles"

    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    membership_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, membership_status={self.membership_status})>"


class Club(Base):
    """Sports club."""

    __tablename__ = "clubs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sport_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, name={self.name})>"


class MembershipApplication(Base):
    """An athlete's application to join a club."""

    __tablename__ = "membership_applications"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    club_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clubs.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    club: Mapped[Club] = relationship("Club", lazy="joined")

    def __repr__(self) -> str:
        return f"<MembershipApplication(id={self.id}, user_id={self.user_id}, status={self.status})>"
