"""
Message <-> row mapping.
"""
from typing import List

from chat_cache.core.keys import message_key
from chat_cache.mappers.encoding import dump_list, dump_map, load_list, load_map
from chat_cache.mappers.reaction import convert_reaction_to_storable
from chat_cache.mappers.storables import Storables
from chat_cache.mappers.user import convert_user_to_storable
from chat_cache.schemas.message import Message, MessageType, Reaction
from chat_cache.schemas.user import User
from chat_cache.storage.base import Row
from chat_cache.utils.datetime_utils import parse_iso_utc, to_iso_utc


def convert_message_to_storable(message: Message, storables: Storables) -> Row:
    """
    Flatten a message into a row.

    The sender, mentioned users and every reaction (with its user) go into
    ``storables``; the row keeps only their ids.
    """
    row = {
        "id": message.id,
        "cid": message.cid,
        "text": message.text or "",
        "type": message.type.value,
        "user": convert_user_to_storable(message.user, storables),
        "attachments": dump_list(message.attachments),
        "mentioned_users": dump_list(
            [convert_user_to_storable(u, storables) for u in message.mentioned_users]
        ),
        "latest_reactions": dump_list(
            [convert_reaction_to_storable(r, storables) for r in message.latest_reactions]
        ),
        "own_reactions": dump_list(
            [convert_reaction_to_storable(r, storables) for r in message.own_reactions]
        ),
        "reaction_counts": dump_map(message.reaction_counts),
        "created_at": to_iso_utc(message.created_at),
        "updated_at": to_iso_utc(message.updated_at),
        "deleted_at": to_iso_utc(message.deleted_at),
        "extra_data": message.extra_data,
    }
    storables[message_key(message.id)] = row
    return row


def referenced_reaction_ids(row: Row) -> List[str]:
    return load_list(row.get("latest_reactions")) + load_list(row.get("own_reactions"))


def referenced_user_ids(row: Row) -> List[str]:
    return [row["user"], *load_list(row.get("mentioned_users"))]


def message_from_row(
    row: Row,
    user: User,
    mentioned_users: List[User],
    latest_reactions: List[Reaction],
    own_reactions: List[Reaction],
) -> Message:
    return Message(
        id=row["id"],
        cid=row["cid"],
        text=row.get("text") or "",
        type=MessageType(row.get("type") or MessageType.REGULAR.value),
        user=user,
        attachments=load_list(row.get("attachments")),
        mentioned_users=mentioned_users,
        latest_reactions=latest_reactions,
        own_reactions=own_reactions,
        reaction_counts=load_map(row.get("reaction_counts")),
        created_at=parse_iso_utc(row.get("created_at")),
        updated_at=parse_iso_utc(row.get("updated_at")),
        deleted_at=parse_iso_utc(row.get("deleted_at")),
        extra_data=row.get("extra_data"),
    )
