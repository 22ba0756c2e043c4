"""
Channel <-> row mapping.

A channel carries its whole state; converting it writes member, read,
message and user rows alongside the channel row.
"""
import logging
from typing import List, Optional

from chat_cache.core.keys import channel_key
from chat_cache.mappers.encoding import dump_list, load_list
from chat_cache.mappers.member import convert_member_to_storable, convert_read_to_storable
from chat_cache.mappers.message import convert_message_to_storable
from chat_cache.mappers.storables import Storables
from chat_cache.schemas.channel import Channel, Member, Read
from chat_cache.schemas.message import Message
from chat_cache.storage.base import Row
from chat_cache.utils.datetime_utils import parse_iso_utc, sort_value, to_iso_utc

logger = logging.getLogger(__name__)


def latest_timestamp(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    """The later of two stored timestamps; never regresses to an older one."""
    if candidate is None:
        return current
    if current is None or sort_value(candidate) > sort_value(current):
        return candidate
    return current


def convert_channel_to_storable(
    channel: Channel,
    storables: Storables,
    existing: Optional[Row] = None,
) -> Row:
    """
    Flatten a channel and its state into ``storables``.

    Args:
        channel: Channel with members, reads and messages
        storables: Scratch buffer collecting every row of the batch
        existing: Previously stored channel row, if any

    Returns:
        The channel row
    """
    cid = channel.cid
    member_ids = [convert_member_to_storable(cid, m, storables) for m in channel.members]

    # Read states exist only for members
    member_users = {m.user_id for m in channel.members}
    for read in channel.read:
        if read.user_id in member_users:
            convert_read_to_storable(cid, read, storables)
        else:
            logger.debug(f"Skipping read state of non-member {read.user_id} in {cid}")

    for message in channel.messages:
        convert_message_to_storable(message, storables)
    pinned_ids = [convert_message_to_storable(m, storables)["id"] for m in channel.pinned_messages]

    updated_at = to_iso_utc(channel.updated_at)
    last_message_at = to_iso_utc(channel.last_message_at)
    if existing is not None:
        if updated_at is None:
            updated_at = existing.get("updated_at")
        last_message_at = latest_timestamp(existing.get("last_message_at"), last_message_at)

    row = {
        "id": cid,
        "channel_id": channel.id,
        "type": channel.type,
        "members": dump_list(member_ids),
        "pinned_messages": dump_list(pinned_ids),
        "extra_data": channel.extra_data,
        "created_at": to_iso_utc(channel.created_at),
        "updated_at": updated_at,
        "last_message_at": last_message_at,
    }
    storables[channel_key(cid)] = row
    return row


def channel_from_row(
    row: Row,
    members: List[Member],
    read: List[Read],
    messages: List[Message],
    pinned_messages: List[Message],
) -> Channel:
    return Channel(
        id=row["channel_id"],
        type=row["type"],
        cid=row["id"],
        members=members,
        read=read,
        messages=messages,
        pinned_messages=pinned_messages,
        extra_data=row.get("extra_data"),
        created_at=parse_iso_utc(row.get("created_at")),
        updated_at=parse_iso_utc(row.get("updated_at")),
        last_message_at=parse_iso_utc(row.get("last_message_at")),
    )


def member_ids_of(row: Row) -> List[str]:
    return load_list(row.get("members"))


def pinned_ids_of(row: Row) -> List[str]:
    return load_list(row.get("pinned_messages"))
