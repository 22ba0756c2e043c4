"""
Pydantic schema exports.
Entities are used both as inbound objects and as hydrated results.
"""
from chat_cache.schemas.user import User
from chat_cache.schemas.message import Message, MessageType, Reaction
from chat_cache.schemas.channel import Channel, Member, Read
from chat_cache.schemas.query import QueryMode

__all__ = [
    "User",
    "Message",
    "MessageType",
    "Reaction",
    "Channel",
    "Member",
    "Read",
    "QueryMode",
]
