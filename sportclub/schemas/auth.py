"""
Auth Schemas
"""

from typing import Optional

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """Authenticated user decoded from a hosted-platform JWT."""

    user_id: str = Field(..., alias="sub")
    email: Optional[str] = None
    role: str = "authenticated"
