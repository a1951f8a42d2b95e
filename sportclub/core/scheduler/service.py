"""
Maintenance Scheduler

APScheduler wrapper running periodic housekeeping, currently the purge of
expired idempotency records.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sportclub.config import settings
from sportclub.core.idempotency.store import IdempotencyStore
from sportclub.core.scheduler.distributed_lock import DistributedLockManager
from sportclub.monitoring.logging import get_logger
from sportclub.monitoring.metrics import idempotency_purged_counter

logger = get_logger(__name__)

PURGE_JOB_ID = "purge-idempotency-records"
PURGE_LOCK_NAME = "purge-idempotency-records"


class MaintenanceScheduler:
    """
    In-process scheduler for maintenance jobs.

    Each API instance schedules the jobs; a Redis lock makes sure only one
    instance does the work per run.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        lock_manager: Optional[DistributedLockManager] = None,
    ):
        self._session_factory = session_factory
        self._lock_manager = lock_manager or DistributedLockManager(
            lock_ttl=settings.idempotency_purge_lock_ttl,
        )
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._started = False

    @property
    def scheduler(self) -> AsyncIOScheduler:
        """Get scheduler instance, creating if needed."""
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(
                job_defaults={"coalesce": True, "max_instances": 1},
                timezone="UTC",
            )
        return self._scheduler

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from sportclub.db.session import async_session_maker
            self._session_factory = async_session_maker
        return self._session_factory

    async def start(self) -> None:
        """Connect the lock manager and start running jobs."""
        if self._started:
            return

        await self._lock_manager.connect()
        self.scheduler.add_job(
            self.purge_idempotency_records,
            trigger=IntervalTrigger(seconds=settings.idempotency_purge_interval),
            id=PURGE_JOB_ID,
            name="Purge expired idempotency records",
            replace_existing=True,
        )
        self.scheduler.start()
        self._started = True
        logger.info("maintenance_scheduler_started", jobs=[PURGE_JOB_ID])

    async def shutdown(self) -> None:
        """Stop the scheduler and release connections."""
        if not self._started:
            return

        self.scheduler.shutdown(wait=False)
        await self._lock_manager.close()
        self._started = False
        logger.info("maintenance_scheduler_stopped")

    async def purge_idempotency_records(self) -> int:
        """
        Delete expired idempotency records.

        Returns:
            Number of records removed; 0 when another instance holds the lock
        """
        async with self._lock_manager.lock(PURGE_LOCK_NAME) as acquired:
            if not acquired:
                logger.info("purge_skipped", reason="lock held by another instance")
                return 0

            async with self.session_factory() as session:
                removed = await IdempotencyStore(session).purge_expired()

        idempotency_purged_counter.inc(removed)
        logger.info("idempotency_records_purged", removed=removed)
        return removed


# Global scheduler instance
maintenance_scheduler = MaintenanceScheduler()
