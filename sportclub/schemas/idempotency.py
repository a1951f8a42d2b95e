"""
Idempotency Schemas

Response envelope returned by the idempotency gate.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResultMetadata(BaseModel):
    """Tracing and replay information attached to every gated response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    request_id: str = Field(..., description="Server-generated request id")
    cached: bool = Field(default=False, description="Whether the result was replayed")
    original_timestamp: Optional[str] = Field(
        None,
        description="Creation time of the original request (replays only)",
    )
    in_progress: bool = Field(
        default=False,
        description="Whether the original request is still being processed",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="When this response was produced",
    )


class IdempotentResult(BaseModel):
    """Outcome of an idempotent request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = Field(None, description="Error code when the request did not succeed")
    metadata: ResultMetadata
