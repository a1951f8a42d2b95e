"""
API Dependencies Module

Common dependencies used across API routes: sessions, clients, services
and the authentication / access guards.
"""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from sportclub.api.errors import RedirectRequired
from sportclub.config import settings
from sportclub.core.access.service import AccessService
from sportclub.core.attendance.service import AttendanceService
from sportclub.core.errors import ApiError, ErrorCode
from sportclub.core.idempotency.service import IdempotencyService
from sportclub.core.idempotency.store import IdempotencyStore
from sportclub.core.roles import Capability, Role, has_capability
from sportclub.db.session import async_session_maker
from sportclub.schemas.auth import AuthUser

ACCESS_TOKEN_COOKIE = "access_token"

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis connection dependency."""
    client = redis.from_url(str(settings.redis_url), decode_responses=True)
    try:
        yield client
    finally:
        await client.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]
RedisClient = Annotated[redis.Redis, Depends(get_redis)]


def get_idempotency_service(db: DbSession) -> IdempotencyService:
    """Get idempotency service dependency."""
    return IdempotencyService(IdempotencyStore(db))


def get_access_service(db: DbSession) -> AccessService:
    return AccessService(db)


def get_attendance_service(db: DbSession) -> AttendanceService:
    return AttendanceService(db)


IdempotencyServiceDep = Annotated[IdempotencyService, Depends(get_idempotency_service)]
AccessServiceDep = Annotated[AccessService, Depends(get_access_service)]
AttendanceServiceDep = Annotated[AttendanceService, Depends(get_attendance_service)]


def decode_access_token(token: str) -> AuthUser:
    """
    Validate a hosted-platform JWT and return the user it names.

    Raises:
        JWTError / ValidationError on a bad signature, expiry or payload
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )
    return AuthUser(**payload)


async def get_optional_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[AuthUser]:
    """Authenticated user from the bearer token or session cookie, else None."""
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None
    try:
        user = decode_access_token(token)
    except (JWTError, ValidationError):
        return None
    # Read by the rate limiter key function
    request.state.user = user
    return user


async def get_current_user(
    user: Annotated[Optional[AuthUser], Depends(get_optional_user)],
) -> AuthUser:
    """Require an authenticated user."""
    if user is None:
        raise ApiError(
            ErrorCode.AUTHENTICATION_REQUIRED,
            "Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
OptionalUser = Annotated[Optional[AuthUser], Depends(get_optional_user)]


def require_capability(capability: Capability):
    """
    Build a dependency that admits users whose role grants ``capability``.

    Athletes must additionally hold an active membership. Lookup failures
    deny access.
    """

    async def guard(user: CurrentUser, access: AccessServiceDep) -> AuthUser:
        try:
            role = await access.get_role(user.user_id)
        except SQLAlchemyError as exc:
            raise ApiError(ErrorCode.FORBIDDEN, "Unable to verify access") from exc

        if not has_capability(role, capability):
            raise ApiError(ErrorCode.FORBIDDEN, "Insufficient role for this action")

        if role is Role.ATHLETE:
            decision = await access.get_athlete_access_status(user.user_id)
            if not decision.has_access:
                raise ApiError(ErrorCode.FORBIDDEN, decision.reason or "Membership is not active")
        return user

    return guard


async def enforce_page_access(
    request: Request,
    user: OptionalUser,
    access: AccessServiceDep,
) -> Optional[AuthUser]:
    """Run the access gate for a page request; raise a redirect when denied."""
    user_id = user.user_id if user else None
    location = await access.resolve_redirect(user_id, request.url.path)
    if location is not None:
        raise RedirectRequired(location)
    return user
