"""
SQLAlchemy models for the offline cache tables.

All managed tables are registered in ``MODELS`` by table name.
"""
from typing import Dict, Type

from chat_cache.core import keys
from chat_cache.models.base import Base, OwnedRowMixin, row_columns
from chat_cache.models.user import UserRecord
from chat_cache.models.channel import ChannelRecord, MemberRecord, ReadRecord
from chat_cache.models.message import MessageRecord, ReactionRecord
from chat_cache.models.query import QueryChannelsMapRecord, SchemaMeta

MODELS: Dict[str, Type[Base]] = {
    keys.QUERY_CHANNELS_MAP: QueryChannelsMapRecord,
    keys.CHANNELS: ChannelRecord,
    keys.MESSAGES: MessageRecord,
    keys.REACTIONS: ReactionRecord,
    keys.READS: ReadRecord,
    keys.USERS: UserRecord,
    keys.MEMBERS: MemberRecord,
}

__all__ = [
    "Base",
    "OwnedRowMixin",
    "row_columns",
    "MODELS",
    "UserRecord",
    "ChannelRecord",
    "MemberRecord",
    "ReadRecord",
    "MessageRecord",
    "ReactionRecord",
    "QueryChannelsMapRecord",
    "SchemaMeta",
]
