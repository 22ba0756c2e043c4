"""
Storage keys, table names and query fingerprints.

Every persisted row is addressed by a ``StorageKey(table, id)``. Drivers
place the key under the namespace of the open session; the key-value driver
renders it as ``{prefix}:{owner}@{table}:{id}``, where ``owner`` is the
percent-encoded user id so that no owner segment is a prefix of another
owner's keys.
"""
import json
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union
from urllib.parse import quote

# Managed tables
QUERY_CHANNELS_MAP = "query_channels_map"
CHANNELS = "channels"
MESSAGES = "messages"
REACTIONS = "reactions"
READS = "reads"
USERS = "users"
MEMBERS = "members"

TABLES: Tuple[str, ...] = (
    QUERY_CHANNELS_MAP,
    CHANNELS,
    MESSAGES,
    REACTIONS,
    READS,
    USERS,
    MEMBERS,
)

# Columns that support ``find_ids`` lookups, per table
INDEXED_FIELDS: Dict[str, Tuple[str, ...]] = {
    MESSAGES: ("cid",),
    MEMBERS: ("cid",),
    READS: ("cid",),
    REACTIONS: ("message_id",),
}

SortSpec = Union[Dict[str, int], Sequence[Tuple[str, int]], None]


class StorageKey(NamedTuple):
    """Address of a single row: table name plus row id."""

    table: str
    id: str

    def render(self, prefix: str, user_id: str) -> str:
        """Render the key for a namespaced key-value store."""
        return f"{prefix}:{owner_segment(user_id)}@{self.table}:{self.id}"


def owner_segment(user_id: str) -> str:
    """Percent-encode a user id; the result never contains ``@``, ``:`` or glob characters."""
    return quote(user_id, safe="")


def user_key(user_id: str) -> StorageKey:
    return StorageKey(USERS, user_id)


def channel_key(cid: str) -> StorageKey:
    return StorageKey(CHANNELS, cid)


def message_key(message_id: str) -> StorageKey:
    return StorageKey(MESSAGES, message_id)


def reaction_key(reaction_id: str) -> StorageKey:
    return StorageKey(REACTIONS, reaction_id)


def member_key(cid: str, user_id: str) -> StorageKey:
    return StorageKey(MEMBERS, composite_id(cid, user_id))


def read_key(cid: str, user_id: str) -> StorageKey:
    return StorageKey(READS, composite_id(cid, user_id))


def query_key(query_fingerprint: str) -> StorageKey:
    return StorageKey(QUERY_CHANNELS_MAP, query_fingerprint)


def composite_id(cid: str, user_id: str) -> str:
    """Row id for entities identified by (channel, user)."""
    return f"{cid}|{user_id}"


def reaction_id(message_id: str, user_id: str, reaction_type: str) -> str:
    """Derived reaction identity: at most one per (message, user, type)."""
    return f"{message_id}{user_id}{reaction_type}"


def normalize_sort(sort: SortSpec) -> List[Tuple[str, int]]:
    """
    Turn a sort mapping into an ordered list of (field, direction) pairs.

    Accepts a mapping (insertion order is priority order) or a sequence of
    pairs. Directions other than -1 are treated as ascending.

    Example:
        >>> normalize_sort({"last_message_at": -1})
        [('last_message_at', -1)]
    """
    if not sort:
        return []
    items: Iterable[Tuple[str, Any]] = sort.items() if isinstance(sort, dict) else sort
    return [(str(field), -1 if direction == -1 else 1) for field, direction in items]


def fingerprint(filters: Optional[Dict[str, Any]], sort: SortSpec) -> str:
    """
    Derive the canonical cache key for a (filters, sort) pair.

    Filter keys are sorted recursively so that semantically identical filter
    objects map to the same string; sort order is kept because it defines
    priority.

    Example:
        >>> fingerprint({"type": "messaging", "members": {"$in": ["a"]}}, {"last_message_at": -1})
        '{"filters":{"members":{"$in":["a"]},"type":"messaging"},"sort":[["last_message_at",-1]]}'
    """
    payload = {
        "filters": filters or {},
        "sort": [list(pair) for pair in normalize_sort(sort)],
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
