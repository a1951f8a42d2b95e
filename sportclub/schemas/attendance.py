"""
Attendance Schemas

Request bodies for athlete attendance endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sportclub.db.models.attendance import CheckInMethod


class CheckInRequest(BaseModel):
    """Schema for checking in to a training session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str = Field(..., min_length=1, max_length=36, description="Training session id")
    method: CheckInMethod = Field(
        default=CheckInMethod.MANUAL,
        description="How the athlete checked in",
    )


class LeaveRequestCreate(BaseModel):
    """Schema for requesting leave from a training session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str = Field(..., min_length=1, max_length=36, description="Training session id")
    reason: str = Field(..., min_length=1, max_length=1000, description="Why the athlete will be absent")
