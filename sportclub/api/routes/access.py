"""
Access Routes

Lets clients ask the access gate about the current user.
"""

from fastapi import APIRouter

from sportclub.api.deps import AccessServiceDep, CurrentUser
from sportclub.schemas.access import AccessDecision

router = APIRouter()


@router.get("/status", response_model=AccessDecision, response_model_exclude_none=True)
async def access_status(user: CurrentUser, access: AccessServiceDep) -> AccessDecision:
    """
    Current access decision for the authenticated user.

    Recomputed from the role and membership tables on every call.
    """
    return await access.get_athlete_access_status(user.user_id)
