"""
Pydantic schemas for channels, members and read states.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chat_cache.schemas.message import Message
from chat_cache.schemas.user import User


class Member(BaseModel):
    """Channel membership, identified by (channel, user)."""

    user: User
    role: Optional[str] = Field(default="member", description="Channel role")
    is_admin: bool = False
    is_moderator: bool = False
    is_owner: bool = False
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @property
    def user_id(self) -> str:
        return self.user.id


class Read(BaseModel):
    """Read state of one member in one channel."""

    user: User
    last_read: datetime
    unread_messages: int = Field(default=0, ge=0)

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @property
    def user_id(self) -> str:
        return self.user.id


class Channel(BaseModel):
    """
    Channel with its state: members, read states, pinned and recent messages.

    ``cid`` defaults to ``type:id``.
    """

    id: str = Field(..., min_length=1, description="Channel ID, unique within its type")
    type: str = Field(default="messaging", description="Channel type")
    cid: str = Field(default="", description="Globally unique type:id")
    members: List[Member] = Field(default_factory=list)
    pinned_messages: List[Message] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    read: List[Read] = Field(default_factory=list)
    extra_data: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_validator("members", "pinned_messages", "messages", "read", mode="before")
    @classmethod
    def absent_as_empty(cls, v):
        return [] if v is None else v

    @model_validator(mode="after")
    def derive_cid(self) -> "Channel":
        if not self.cid:
            self.cid = f"{self.type}:{self.id}"
        return self
