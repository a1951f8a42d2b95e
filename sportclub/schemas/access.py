"""
Access Schemas

Decision produced by the access gate.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sportclub.core.roles import MembershipStatus


class AccessDecision(BaseModel):
    """Whether a user may enter the protected area, and why not."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    has_access: bool
    membership_status: Optional[MembershipStatus] = None
    reason: Optional[str] = Field(None, description="Human-readable explanation")
    redirect_path: Optional[str] = Field(None, description="Where to send a denied user")
    application_id: Optional[str] = None
    club_name: Optional[str] = None
    rejection_reason: Optional[str] = None
