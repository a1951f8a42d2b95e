"""
Idempotency Record Model

Database model for per-user, per-endpoint idempotency tracking.
"""

import enum
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import String, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sportclub.db.base import Base


class IdempotencyStatus(str, enum.Enum):
    """Lifecycle state of an idempotency record."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class IdempotencyRecord(Base):
    """
    Idempotency Record Model.

    One row per (user_id, endpoint, key). The unique constraint is what makes
    the first insert win when duplicate submissions race each other.
    """

    __tablename__ = "idempotency_records"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", "key", name="uq_idempotency_scope"),
    )

    key: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=IdempotencyStatus.IN_PROGRESS.value,
    )
    result: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Server-side trace id, distinct from the client key
    request_id: Mapped[str] = mapped_column(String(36), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<IdempotencyRecord(key={self.key}, user={self.user_id}, "
            f"endpoint={self.endpoint}, status={self.status})>"
        )
