"""
Member and read-state <-> row mapping.
"""
from chat_cache.core.keys import composite_id, member_key, read_key
from chat_cache.mappers.storables import Storables
from chat_cache.mappers.user import convert_user_to_storable
from chat_cache.schemas.channel import Member, Read
from chat_cache.schemas.user import User
from chat_cache.storage.base import Row
from chat_cache.utils.datetime_utils import parse_iso_utc, to_iso_utc


def convert_member_to_storable(cid: str, member: Member, storables: Storables) -> str:
    """Store the member of channel ``cid`` and its user; return the member id."""
    row_id = composite_id(cid, member.user_id)
    storables[member_key(cid, member.user_id)] = {
        "id": row_id,
        "cid": cid,
        "user": convert_user_to_storable(member.user, storables),
        "role": member.role,
        "is_admin": int(member.is_admin),
        "is_moderator": int(member.is_moderator),
        "is_owner": int(member.is_owner),
        "joined_at": to_iso_utc(member.joined_at),
        "left_at": to_iso_utc(member.left_at),
    }
    return row_id


def member_from_row(row: Row, user: User) -> Member:
    return Member(
        user=user,
        role=row.get("role"),
        is_admin=bool(row.get("is_admin")),
        is_moderator=bool(row.get("is_moderator")),
        is_owner=bool(row.get("is_owner")),
        joined_at=parse_iso_utc(row.get("joined_at")),
        left_at=parse_iso_utc(row.get("left_at")),
    )


def convert_read_to_storable(cid: str, read: Read, storables: Storables) -> str:
    row_id = composite_id(cid, read.user_id)
    storables[read_key(cid, read.user_id)] = {
        "id": row_id,
        "cid": cid,
        "user": convert_user_to_storable(read.user, storables),
        "last_read": to_iso_utc(read.last_read),
        "unread_messages": read.unread_messages,
    }
    return row_id


def read_from_row(row: Row, user: User) -> Read:
    return Read(
        user=user,
        last_read=parse_iso_utc(row["last_read"]),
        unread_messages=row.get("unread_messages") or 0,
    )
