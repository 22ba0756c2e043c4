"""
Offline persistence and query cache for chat channels, messages and users.
"""
from chat_cache.core.exceptions import (
    OfflineStorageError,
    QueryFailed,
    ReferenceMissing,
    SchemaMismatch,
    SessionError,
    StorageUnavailable,
)
from chat_cache.paginator import ChannelListPaginator, ChannelQueryClient, PaginatorStatus
from chat_cache.schema_manager import SchemaManager
from chat_cache.schemas import Channel, Member, Message, MessageType, QueryMode, Reaction, Read, User
from chat_cache.store import OfflineStore, open_store

__version__ = "1.0.0"

__all__ = [
    "OfflineStore",
    "open_store",
    "ChannelListPaginator",
    "ChannelQueryClient",
    "PaginatorStatus",
    "SchemaManager",
    "Channel",
    "Member",
    "Message",
    "MessageType",
    "QueryMode",
    "Reaction",
    "Read",
    "User",
    "OfflineStorageError",
    "QueryFailed",
    "ReferenceMissing",
    "SchemaMismatch",
    "SessionError",
    "StorageUnavailable",
]
