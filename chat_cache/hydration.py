"""
Hydration engine: rebuilds linked entities from normalized rows.

Referenced users are always fetched with one batched ``multi_get`` no matter
how many rows reference them. Hydration never writes; a user row that is
missing is replaced by a ``User(id=...)`` stub.
"""
import logging
from typing import Dict, Iterable, List, Optional

from chat_cache.config import settings
from chat_cache.core import keys
from chat_cache.core.exceptions import ReferenceMissing
from chat_cache.core.keys import SortSpec, StorageKey, normalize_sort
from chat_cache.mappers.channel import channel_from_row, member_ids_of, pinned_ids_of
from chat_cache.mappers.encoding import load_list
from chat_cache.mappers.member import member_from_row, read_from_row
from chat_cache.mappers.message import message_from_row, referenced_reaction_ids, referenced_user_ids
from chat_cache.mappers.reaction import reaction_from_row
from chat_cache.mappers.user import user_from_row
from chat_cache.schemas import Channel, Message, Reaction, User
from chat_cache.storage.base import Row, StorageDriver, StorageSession
from chat_cache.utils.datetime_utils import sort_value

logger = logging.getLogger(__name__)

# Only these channel fields are honored for sorting; others are ignored
VALID_CHANNELS_SORT_KEYS = (
    "last_message_at",
    "updated_at",
    "created_at",
)


class UserResolver:
    """Lookup of fetched user rows with stub substitution."""

    def __init__(self, rows: Dict[StorageKey, Row]):
        self._rows = {key.id: row for key, row in rows.items()}
        self._users: Dict[str, User] = {}
        self.missing: List[str] = []

    def __getitem__(self, user_id: str) -> User:
        if user_id not in self._users:
            row = self._rows.get(user_id)
            if row is None:
                raise ReferenceMissing(keys.USERS, user_id)
            self._users[user_id] = user_from_row(row)
        return self._users[user_id]

    def resolve(self, user_id: str) -> User:
        try:
            return self[user_id]
        except ReferenceMissing as e:
            logger.debug(f"{e}; substituting stub")
            self.missing.append(user_id)
            return User.stub(user_id)


def sort_channel_rows(rows: List[Row], sort: SortSpec) -> List[Row]:
    """
    Stable multi-key sort of channel rows.

    Earlier sort keys take priority; ties keep input order. Unrecognized keys
    are skipped.
    """
    ordered = list(rows)
    for field, direction in reversed(normalize_sort(sort)):
        if field not in VALID_CHANNELS_SORT_KEYS:
            logger.debug(f"Ignoring unsupported channel sort key {field!r}")
            continue
        ordered.sort(key=lambda row: sort_value(row.get(field)), reverse=direction == -1)
    return ordered


def newest_first(rows: Iterable[Row]) -> List[Row]:
    return sorted(rows, key=lambda row: sort_value(row.get("created_at")), reverse=True)


class HydrationEngine:
    """Reassembles channels and messages for one storage session."""

    def __init__(
        self,
        driver: StorageDriver,
        session: StorageSession,
        message_page_size: int = settings.message_page_size,
    ):
        self.driver = driver
        self.session = session
        self.message_page_size = message_page_size

    async def hydrate_channels(
        self,
        rows: List[Row],
        sort: SortSpec = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Channel]:
        """
        Hydrate channel rows into full channels.

        Args:
            rows: Channel rows, possibly with duplicates (first one wins)
            sort: Sort mapping; applied before offset/limit
            offset: Channels to skip after sorting
            limit: Maximum channels to return (None for all)

        Returns:
            Channels with members, reads, pinned messages and the newest
            ``message_page_size`` messages in ascending order
        """
        unique: Dict[str, Row] = {}
        for row in rows:
            unique.setdefault(row["id"], row)

        page = sort_channel_rows(list(unique.values()), sort)
        end = None if limit is None else offset + limit
        page = page[offset:end]
        if not page:
            return []

        # Phase 1: rows owned by each channel, one lookup per table
        cids = [row["id"] for row in page]
        message_ids = await self.driver.find_ids_in(self.session, keys.MESSAGES, "cid", cids)
        read_ids = await self.driver.find_ids_in(self.session, keys.READS, "cid", cids)

        wanted: List[StorageKey] = []
        for row in page:
            cid = row["id"]
            wanted.extend(StorageKey(keys.MEMBERS, id) for id in member_ids_of(row))
            wanted.extend(StorageKey(keys.READS, id) for id in read_ids[cid])
            wanted.extend(keys.message_key(id) for id in message_ids[cid] + pinned_ids_of(row))
        owned = await self.driver.multi_get(self.session, wanted)

        # Phase 2: pick each channel's message window
        windows: Dict[str, List[Row]] = {}
        pinned: Dict[str, List[Row]] = {}
        for row in page:
            cid = row["id"]
            candidates = [owned[keys.message_key(id)] for id in message_ids[cid] if keys.message_key(id) in owned]
            windows[cid] = list(reversed(newest_first(candidates)[: self.message_page_size]))
            pinned[cid] = [owned[keys.message_key(id)] for id in pinned_ids_of(row) if keys.message_key(id) in owned]

        message_rows = [m for cid in windows for m in windows[cid] + pinned[cid]]
        reactions = await self._load_reactions(message_rows)

        # Phase 3: every referenced user in one round trip
        user_ids: List[str] = []
        for key, owned_row in owned.items():
            if key.table in (keys.MEMBERS, keys.READS):
                user_ids.append(owned_row["user"])
        for message_row in message_rows:
            user_ids.extend(referenced_user_ids(message_row))
        user_ids.extend(r["user"] for r in reactions.values())
        users = await self._load_users(user_ids)

        channels = []
        for row in page:
            cid = row["id"]
            members = [
                member_from_row(owned[key], users.resolve(owned[key]["user"]))
                for key in (StorageKey(keys.MEMBERS, id) for id in member_ids_of(row))
                if key in owned
            ]
            read = [
                read_from_row(owned[key], users.resolve(owned[key]["user"]))
                for key in (StorageKey(keys.READS, id) for id in read_ids[cid])
                if key in owned
            ]
            channels.append(
                channel_from_row(
                    row,
                    members=members,
                    read=read,
                    messages=[self._build_message(m, reactions, users) for m in windows[cid]],
                    pinned_messages=[self._build_message(m, reactions, users) for m in pinned[cid]],
                )
            )

        if users.missing:
            logger.debug(f"Hydrated {len(channels)} channels with {len(set(users.missing))} stub users")
        return channels

    async def hydrate_messages(
        self,
        rows: List[Row],
        anchor_id: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> List[Message]:
        """
        Hydrate one page of messages.

        Rows are ordered newest first and the page starts at the anchor
        message (inclusive). Without an anchor the page starts at the newest
        message; an anchor that is not among the rows yields an empty page.

        Returns:
            The page, newest-last
        """
        page_size = page_size or self.message_page_size
        ordered = newest_first(rows)

        start = 0
        if anchor_id is not None:
            index = next((i for i, row in enumerate(ordered) if row["id"] == anchor_id), None)
            if index is None:
                logger.debug(f"Pagination anchor {anchor_id} not found; returning empty page")
                return []
            start = index

        window = list(reversed(ordered[start:start + page_size]))
        reactions = await self._load_reactions(window)

        user_ids: List[str] = []
        for row in window:
            user_ids.extend(referenced_user_ids(row))
        user_ids.extend(r["user"] for r in reactions.values())
        users = await self._load_users(user_ids)

        return [self._build_message(row, reactions, users) for row in window]

    async def _load_reactions(self, message_rows: List[Row]) -> Dict[str, Row]:
        reaction_keys = [
            keys.reaction_key(id) for row in message_rows for id in referenced_reaction_ids(row)
        ]
        fetched = await self.driver.multi_get(self.session, reaction_keys)
        return {key.id: row for key, row in fetched.items()}

    async def _load_users(self, user_ids: List[str]) -> UserResolver:
        fetched = await self.driver.multi_get(self.session, [keys.user_key(id) for id in user_ids])
        return UserResolver(fetched)

    @staticmethod
    def _build_message(row: Row, reactions: Dict[str, Row], users: UserResolver) -> Message:
        def build_reactions(field: str) -> List[Reaction]:
            return [
                reaction_from_row(reactions[id], users.resolve(reactions[id]["user"]))
                for id in load_list(row.get(field))
                if id in reactions
            ]

        return message_from_row(
            row,
            user=users.resolve(row["user"]),
            mentioned_users=[users.resolve(id) for id in load_list(row.get("mentioned_users"))],
            latest_reactions=build_reactions("latest_reactions"),
            own_reactions=build_reactions("own_reactions"),
        )
