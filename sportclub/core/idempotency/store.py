"""
Idempotency Store

SQL-backed persistence for idempotency records. Creation is insert-first:
the unique constraint on (user_id, endpoint, key) decides which of several
concurrent submissions owns the key.
"""

from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sportclub.config import settings
from sportclub.db.base import as_utc, utcnow
from sportclub.db.models.idempotency import IdempotencyRecord, IdempotencyStatus


class DuplicateIdempotencyKey(Exception):
    """Raised when another request already holds the (user, endpoint, key) scope."""


class IdempotencyStore:
    """Data access for ``idempotency_records``."""

    def __init__(
        self,
        session: AsyncSession,
        ttl: Optional[int] = None,
        in_progress_lease: Optional[int] = None,
    ):
        self.session = session
        self.ttl = ttl if ttl is not None else settings.idempotency_ttl
        self.in_progress_lease = (
            in_progress_lease
            if in_progress_lease is not None
            else settings.idempotency_in_progress_lease
        )

    async def get(
        self,
        user_id: str,
        endpoint: str,
        key: str,
    ) -> Optional[IdempotencyRecord]:
        """
        Fetch the live record for a scope.

        Expired, failed and abandoned (in progress past the lease) records are
        deleted on sight and reported as absent.
        Store errors propagate to the caller.
        """
        stmt = (
            select(IdempotencyRecord)
            .where(
                IdempotencyRecord.user_id == user_id,
                IdempotencyRecord.endpoint == endpoint,
                IdempotencyRecord.key == key,
            )
            .execution_options(populate_existing=True)
        )
        record = (await self.session.execute(stmt)).scalar_one_or_none()
        if record is None:
            return None

        if self._is_stale(record):
            await self.remove(record.id)
            return None
        return record

    async def create(
        self,
        user_id: str,
        endpoint: str,
        key: str,
        request_id: str,
    ) -> IdempotencyRecord:
        """
        Insert an in-progress record.

        Raises:
            DuplicateIdempotencyKey: a record for the scope already exists
        """
        now = utcnow()
        record = IdempotencyRecord(
            key=key,
            user_id=user_id,
            endpoint=endpoint,
            status=IdempotencyStatus.IN_PROGRESS.value,
            request_id=request_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl),
        )
        self.session.add(record)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateIdempotencyKey(key) from exc
        return record

    async def complete(self, record_id: str, result: Any) -> None:
        """Mark a record completed and store the result to replay."""
        await self.session.execute(
            update(IdempotencyRecord)
            .where(IdempotencyRecord.id == record_id)
            .values(
                status=IdempotencyStatus.COMPLETED.value,
                result=result,
                completed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def remove(self, record_id: str) -> None:
        """Delete a record so the key may be used again."""
        # Discard whatever the failed operation left uncommitted
        await self.session.rollback()
        await self.session.execute(
            delete(IdempotencyRecord)
            .where(IdempotencyRecord.id == record_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def purge_expired(self) -> int:
        """Delete every expired record. Returns the number of rows removed."""
        result = await self.session.execute(
            delete(IdempotencyRecord)
            .where(IdempotencyRecord.expires_at <= utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    def _is_stale(self, record: IdempotencyRecord) -> bool:
        now = utcnow()
        if as_utc(record.expires_at) <= now:
            return True
        if record.status == IdempotencyStatus.FAILED.value:
            return True
        return (
            record.status == IdempotencyStatus.IN_PROGRESS.value
            and as_utc(record.created_at) + timedelta(seconds=self.in_progress_lease) <= now
        )
