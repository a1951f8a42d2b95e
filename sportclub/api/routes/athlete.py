"""
Athlete Routes - Mutating Endpoints with Idempotency Support

Check-in and leave requests accept an optional ``Idempotency-Key`` header.
Duplicate submissions with the same key replay the original response.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from sportclub.api.deps import (
    AttendanceServiceDep,
    IdempotencyServiceDep,
    require_capability,
)
from sportclub.core.errors import ApiError, ErrorCode
from sportclub.core.idempotency.keys import (
    extract_idempotency_key,
    generate_request_id,
    is_valid_idempotency_key,
)
from sportclub.core.idempotency.service import IdempotencyService
from sportclub.core.ratelimit import default_rate_limit, limiter
from sportclub.core.roles import Capability
from sportclub.schemas.attendance import CheckInRequest, LeaveRequestCreate
from sportclub.schemas.auth import AuthUser

CHECK_IN_ENDPOINT = "/api/athlete/check-in"
LEAVE_REQUEST_ENDPOINT = "/api/athlete/leave-request"

router = APIRouter()


async def run_idempotent(
    request: Request,
    user: AuthUser,
    gate: IdempotencyService,
    endpoint: str,
    operation: Callable[[], Awaitable[Dict[str, Any]]],
) -> JSONResponse:
    """
    Execute ``operation`` under the idempotency gate when the client sent a key.

    Without a key the operation runs unprotected.
    """
    key = extract_idempotency_key(request.headers)

    if key is None:
        request_id = generate_request_id()
        data = jsonable_encoder(await operation())
        return JSONResponse(
            content={
                "success": True,
                "data": data,
                "metadata": {
                    "requestId": request_id,
                    "cached": False,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            },
            headers={"X-Request-Id": request_id},
        )

    if not is_valid_idempotency_key(key):
        raise ApiError(
            ErrorCode.INVALID_IDEMPOTENCY_KEY,
            "Idempotency-Key must be a valid UUID or alphanumeric string",
        )

    result = await gate.handle_request(key, user.user_id, endpoint, operation)

    headers = {"X-Request-Id": result.metadata.request_id}
    if result.metadata.cached:
        headers["X-Idempotency-Cached"] = "true"
        headers["X-Original-Timestamp"] = result.metadata.original_timestamp or ""

    if result.success:
        status_code = status.HTTP_200_OK
    elif result.metadata.in_progress:
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


CheckInAthlete = Annotated[AuthUser, Depends(require_capability(Capability.CHECK_IN))]
LeaveAthlete = Annotated[AuthUser, Depends(require_capability(Capability.REQUEST_LEAVE))]


@router.post("/check-in")
@limiter.limit(default_rate_limit)
async def check_in(
    request: Request,
    body: CheckInRequest,
    user: CheckInAthlete,
    attendance: AttendanceServiceDep,
    gate: IdempotencyServiceDep,
) -> JSONResponse:
    """
    Check the athlete in to a training session.
    """
    async def operation() -> Dict[str, Any]:
        return await attendance.check_in(user.user_id, body.session_id, body.method)

    return await run_idempotent(request, user, gate, CHECK_IN_ENDPOINT, operation)


@router.post("/leave-request")
@limiter.limit(default_rate_limit)
async def leave_request(
    request: Request,
    body: LeaveRequestCreate,
    user: LeaveAthlete,
    attendance: AttendanceServiceDep,
    gate: IdempotencyServiceDep,
) -> JSONResponse:
    """
    Submit a leave request for a training session.
    """
    async def operation() -> Dict[str, Any]:
        return await attendance.request_leave(user.user_id, body.session_id, body.reason)

    return await run_idempotent(request, user, gate, LEAVE_REQUEST_ENDPOINT, operation)
