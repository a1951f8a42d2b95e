"""
Page Routes

Entry points for the portal pages. Every request under ``/dashboard`` and
``/pending-approval`` passes through the access gate first, which either
lets it through or answers with a redirect.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from sportclub.api.deps import AccessServiceDep, CurrentUser, enforce_page_access
from sportclub.api.errors import RedirectRequired
from sportclub.core.roles import LOGIN_PATH, PENDING_APPROVAL_PATH, ROLE_CAPABILITIES
from sportclub.monitoring.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(enforce_page_access)])


@router.get("/dashboard")
async def dashboard_root(user: CurrentUser) -> Dict[str, Any]:
    # The gate redirects every user away from the root
    return {"portal": None, "user_id": user.user_id}


@router.get("/dashboard/{portal}")
@router.get("/dashboard/{portal}/{page:path}")
async def portal_page(
    request: Request,
    portal: str,
    user: CurrentUser,
    access: AccessServiceDep,
    page: Optional[str] = None,
) -> Dict[str, Any]:
    """Describe the portal page the user was admitted to."""
    try:
        role = await access.get_role(user.user_id)
    except SQLAlchemyError as exc:
        logger.error("access_lookup_failed", user_id=user.user_id, error=str(exc))
        raise RedirectRequired(LOGIN_PATH) from exc
    return {
        "portal": portal,
        "page": page or "",
        "path": request.url.path,
        "role": role.value,
        "capabilities": sorted(c.value for c in ROLE_CAPABILITIES[role]),
    }


@router.get(PENDING_APPROVAL_PATH)
async def pending_approval(user: CurrentUser, access: AccessServiceDep) -> Dict[str, Any]:
    """Membership state shown to athletes without an active membership."""
    decision = await access.get_athlete_access_status(user.user_id)
    return decision.model_dump(mode="json", by_alias=True, exclude_none=True)
