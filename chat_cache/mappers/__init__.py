"""
Normalization mapper: entity graphs to flat, id-referencing rows.

Each ``convert_*_to_storable`` writes the entity and everything embedded in
it into a ``Storables`` scratch buffer; the caller persists the buffer with
one ``multi_set``.
"""
from typing import Optional, Union

from chat_cache.core.keys import member_key, reaction_key, read_key, user_key
from chat_cache.mappers.channel import channel_from_row, convert_channel_to_storable
from chat_cache.mappers.member import (
    convert_member_to_storable,
    convert_read_to_storable,
    member_from_row,
    read_from_row,
)
from chat_cache.mappers.message import convert_message_to_storable, message_from_row
from chat_cache.mappers.reaction import convert_reaction_to_storable, reaction_from_row
from chat_cache.mappers.storables import Storables
from chat_cache.mappers.user import convert_user_to_storable, user_from_row
from chat_cache.schemas import Channel, Member, Message, Reaction, Read, User
from chat_cache.storage.base import Row

Entity = Union[Channel, Message, Member, Read, Reaction, User]


def to_storable(entity: Entity, storables: Storables, cid: Optional[str] = None) -> Row:
    """
    Normalize any entity and return its primary row.

    Args:
        entity: Entity to flatten
        storables: Scratch buffer receiving every row
        cid: Owning channel, required for members and read states

    Raises:
        ValueError: member/read without ``cid``, or an unsupported type
    """
    if isinstance(entity, Channel):
        return convert_channel_to_storable(entity, storables)
    if isinstance(entity, Message):
        return convert_message_to_storable(entity, storables)
    if isinstance(entity, Reaction):
        convert_reaction_to_storable(entity, storables)
        return storables[reaction_key(entity.id)]
    if isinstance(entity, User):
        convert_user_to_storable(entity, storables)
        return storables[user_key(entity.id)]
    if not isinstance(entity, (Member, Read)):
        raise ValueError(f"Cannot normalize {type(entity).__name__}")
    if not cid:
        raise ValueError(f"{type(entity).__name__} requires the owning channel cid")
    if isinstance(entity, Member):
        convert_member_to_storable(cid, entity, storables)
        return storables[member_key(cid, entity.user_id)]
    convert_read_to_storable(cid, entity, storables)
    return storables[read_key(cid, entity.user_id)]


__all__ = [
    "Storables",
    "to_storable",
    "convert_channel_to_storable",
    "convert_member_to_storable",
    "convert_message_to_storable",
    "convert_reaction_to_storable",
    "convert_read_to_storable",
    "convert_user_to_storable",
    "channel_from_row",
    "member_from_row",
    "message_from_row",
    "reaction_from_row",
    "read_from_row",
    "user_from_row",
]
