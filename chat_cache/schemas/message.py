"""
Pydantic schemas for messages and reactions.
"""
import enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chat_cache.core.keys import reaction_id
from chat_cache.schemas.user import User


class MessageType(str, enum.Enum):
    """Enum for message types."""
    REGULAR = "regular"
    DELETED = "deleted"
    SYSTEM = "system"
    ERROR = "error"
    REPLY = "reply"
    EPHEMERAL = "ephemeral"


class Reaction(BaseModel):
    """
    Reaction on a message.

    The id is always derived from (message_id, user id, type), so re-applying
    the same reaction addresses the same row.
    """

    id: str = Field(default="", description="Derived: message_id + user_id + type")
    message_id: str = Field(..., description="Message the reaction belongs to")
    user: User
    type: str = Field(..., min_length=1, description="Reaction type, e.g. 'like'")
    score: int = Field(default=1, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra_data: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @model_validator(mode="after")
    def derive_id(self) -> "Reaction":
        self.id = reaction_id(self.message_id, self.user.id, self.type)
        return self

    @property
    def user_id(self) -> str:
        return self.user.id


class Message(BaseModel):
    """Chat message with embedded sender, mentions and reactions."""

    id: str = Field(..., min_length=1, description="Message ID")
    cid: str = Field(..., description="Owning channel cid (type:id)")
    text: str = Field(default="")
    type: MessageType = Field(default=MessageType.REGULAR)
    user: User
    attachments: List[str] = Field(default_factory=list, description="Opaque attachment descriptors")
    mentioned_users: List[User] = Field(default_factory=list)
    latest_reactions: List[Reaction] = Field(default_factory=list)
    own_reactions: List[Reaction] = Field(default_factory=list)
    reaction_counts: Dict[str, int] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = Field(None, description="Set when the message is soft-deleted")
    extra_data: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_validator(
        "attachments",
        "mentioned_users",
        "latest_reactions",
        "own_reactions",
        mode="before",
    )
    @classmethod
    def absent_as_empty(cls, v):
        """Absent arrays are normalized to empty lists, never None."""
        return [] if v is None else v

    @field_validator("reaction_counts", mode="before")
    @classmethod
    def absent_counts_as_empty(cls, v):
        return {} if v is None else v

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_editable(self) -> bool:
        """Soft-deleted messages are read-only."""
        return not self.is_deleted
