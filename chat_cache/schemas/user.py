"""
Pydantic schema for chat users.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    Chat user as delivered by the remote client.

    A user built from an id alone is the placeholder returned by hydration
    when the referenced row is missing.
    """

    id: str = Field(..., min_length=1, description="User ID")
    role: Optional[str] = Field(None, description="Application role")
    online: bool = Field(default=False, description="Presence flag")
    banned: bool = Field(default=False, description="Whether the user is banned")
    last_active: Optional[datetime] = Field(None, description="Last activity timestamp")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra_data: Optional[str] = Field(None, description="Opaque caller-encoded payload")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @classmethod
    def stub(cls, user_id: str) -> "User":
        """Minimal placeholder for a user whose row is missing."""
        return cls(id=user_id)
