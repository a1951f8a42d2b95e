"""
Idempotency Service

At-most-once execution of mutating requests per (user, endpoint, key).
"""

from typing import Any, Awaitable, Callable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError

from sportclub.core.errors import ApiError, ErrorCode
from sportclub.core.idempotency.keys import generate_request_id
from sportclub.core.idempotency.store import DuplicateIdempotencyKey, IdempotencyStore
from sportclub.db.base import as_utc
from sportclub.db.models.idempotency import IdempotencyRecord, IdempotencyStatus
from sportclub.monitoring.logging import get_logger
from sportclub.monitoring.metrics import (
    idempotency_hits_counter,
    idempotency_misses_counter,
    idempotency_conflicts_counter,
    idempotency_failures_counter,
)
from sportclub.schemas.idempotency import IdempotentResult, ResultMetadata

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Any]]

CLAIM_ATTEMPTS = 2

IN_PROGRESS_MESSAGE = "The original request is still being processed"


class IdempotencyService:
    """
    Service wrapping a mutating operation with an idempotency key.

    Flow:
    1. Look up the record for (user_id, endpoint, key)
    2. Completed: replay the stored result without running the operation
    3. In progress: report a conflict without running the operation
    4. Absent: insert an in-progress record (the unique constraint arbitrates
       races), run the operation, then store the result or remove the record
       on failure so the key can be retried
    5. A record left in progress past its lease counts as abandoned
    """

    def __init__(self, store: IdempotencyStore):
        """Initialize with a record store."""
        self.store = store

    async def handle_request(
        self,
        key: str,
        user_id: str,
        endpoint: str,
        operation: Operation,
    ) -> IdempotentResult:
        """
        Run ``operation`` at most once for the given scope.

        Args:
            key: Client idempotency key (already format-checked)
            user_id: Owning user
            endpoint: Logical operation path
            operation: Zero-argument coroutine factory producing the result

        Returns:
            IdempotentResult with the fresh, replayed or conflict outcome
        """
        log = logger.bind(user_id=user_id, endpoint=endpoint, idempotency_key=key)

        existing = await self.store.get(user_id, endpoint, key)
        if existing is not None:
            return self._from_existing(existing, log)

        request_id = generate_request_id()
        for attempt in range(CLAIM_ATTEMPTS):
            try:
                record = await self.store.create(user_id, endpoint, key, request_id)
                break
            except DuplicateIdempotencyKey:
                log.info("idempotency_insert_conflict", attempt=attempt + 1)
                existing = await self.store.get(user_id, endpoint, key)
                if existing is not None:
                    return self._from_existing(existing, log)
                # The winner failed and released the key in between; claim it again
        else:
            return self._conflict(request_id, endpoint, log)

        record_id = record.id
        idempotency_misses_counter.labels(endpoint=endpoint).inc()
        log = log.bind(request_id=request_id)

        try:
            data = jsonable_encoder(await operation())
        except Exception as exc:
            idempotency_failures_counter.labels(endpoint=endpoint).inc()
            log.warning("idempotent_operation_failed", error=str(exc))
            await self.store.remove(record_id)
            return IdempotentResult(
                success=False,
                error=str(exc),
                code=exc.code.value if isinstance(exc, ApiError) else None,
                metadata=ResultMetadata(request_id=request_id),
            )

        try:
            await self.store.complete(record_id, data)
        except SQLAlchemyError:
            # The operation already ran; hand its result back and free the key
            log.exception("idempotency_complete_failed")
            await self._release(record_id, log)
        else:
            log.info("idempotent_operation_completed")

        return IdempotentResult(
            success=True,
            data=data,
            metadata=ResultMetadata(request_id=request_id, cached=False),
        )

    async def _release(self, record_id: str, log) -> None:
        try:
            await self.store.remove(record_id)
        except SQLAlchemyError:
            # The in-progress lease frees the key once it runs out
            log.exception("idempotency_release_failed")

    def _from_existing(self, record: IdempotencyRecord, log) -> IdempotentResult:
        if record.status == IdempotencyStatus.COMPLETED.value:
            idempotency_hits_counter.labels(endpoint=record.endpoint).inc()
            original = as_utc(record.created_at).isoformat()
            log.info("idempotent_replay", original_timestamp=original)
            return IdempotentResult(
                success=True,
                data=record.result,
                metadata=ResultMetadata(
                    request_id=record.request_id,
                    cached=True,
                    original_timestamp=original,
                ),
            )
        return self._conflict(record.request_id, record.endpoint, log)

    def _conflict(self, request_id: str, endpoint: str, log) -> IdempotentResult:
        idempotency_conflicts_counter.labels(endpoint=endpoint).inc()
        log.info("idempotent_request_in_progress")
        return IdempotentResult(
            success=False,
            error=IN_PROGRESS_MESSAGE,
            code=ErrorCode.REQUEST_IN_PROGRESS.value,
            metadata=ResultMetadata(request_id=request_id, in_progress=True),
        )
