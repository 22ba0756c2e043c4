"""
Offline store: the public read/write surface of the cache.

Writes normalize entities and persist each batch with one ``multi_set``;
reads hydrate rows back into linked entities. Storage errors are logged by
the driver and re-raised as ``StorageUnavailable``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from chat_cache.config import Settings, settings as default_settings
from chat_cache.core import keys
from chat_cache.core.keys import SortSpec
from chat_cache.core.logging import configure_logging
from chat_cache.hydration import HydrationEngine
from chat_cache.mappers import (
    Storables,
    convert_channel_to_storable,
    convert_member_to_storable,
    convert_message_to_storable,
    convert_read_to_storable,
)
from chat_cache.mappers.channel import latest_timestamp, member_ids_of
from chat_cache.mappers.encoding import dump_list
from chat_cache.mappers.user import is_partial_user_row
from chat_cache.query_cache import QueryCache
from chat_cache.schema_manager import SchemaManager
from chat_cache.schemas import Channel, Member, Message, QueryMode, Reaction, Read, User
from chat_cache.storage.base import StorageDriver, StorageSession
from chat_cache.storage.factory import create_driver
from chat_cache.utils.datetime_utils import to_iso_utc

logger = logging.getLogger(__name__)


class OfflineStore:
    """
    Offline cache bound to one storage session.

    Example:
        ```python
        store = await OfflineStore.open(driver, user_id="U1234")
        await store.store_channels({"type": "messaging"}, {"last_message_at": -1}, channels, QueryMode.RELOAD)
        cached = await store.query_channels({"type": "messaging"}, {"last_message_at": -1})
        ```
    """

    def __init__(
        self,
        driver: StorageDriver,
        session: StorageSession,
        schema: SchemaManager,
        message_page_size: int = default_settings.message_page_size,
        query_channels_limit: int = default_settings.query_channels_limit,
    ):
        self.driver = driver
        self.session = session
        self.schema = schema
        self.message_page_size = message_page_size
        self.query_channels_limit = query_channels_limit
        self.queries = QueryCache(driver, session)
        self.hydration = HydrationEngine(driver, session, message_page_size)

    @classmethod
    async def open(
        cls,
        driver: StorageDriver,
        user_id: str,
        settings: Settings = default_settings,
    ) -> "OfflineStore":
        """
        Migrate storage if needed and open a session for ``user_id``.

        Raises:
            StorageUnavailable: storage cannot be opened or migrated
            SessionError: another session is still open on the driver
        """
        schema = SchemaManager(driver)
        await schema.migrate_if_needed(settings.schema_version)
        session = await driver.open(user_id)
        return cls(
            driver,
            session,
            schema,
            message_page_size=settings.message_page_size,
            query_channels_limit=settings.query_channels_limit,
        )

    @property
    def user_id(self) -> str:
        return self.session.user_id

    async def switch_user(self, user_id: str, purge: bool = True) -> None:
        """
        Hand the store over to another local user.

        The previous user's entries are purged before the new session begins.
        """
        self._guard()
        if purge:
            await self.driver.delete_all(self.session)
        await self.session.close()
        self.session = await self.driver.open(user_id)
        self.queries = QueryCache(self.driver, self.session)
        self.hydration = HydrationEngine(self.driver, self.session, self.message_page_size)

    async def close(self) -> None:
        await self.session.close()

    def _guard(self) -> None:
        self.schema.ensure_ready()

    async def _write(self, storables: Storables) -> None:
        """Persist one batch, completing partial user rows from their stored copies."""
        partial = [key for key, row in storables.items() if key.table == keys.USERS and is_partial_user_row(row)]
        if partial:
            stored = await self.driver.multi_get(self.session, partial)
            for key, row in stored.items():
                storables[key] = {**row, **storables[key]}
        await self.driver.multi_set(self.session, storables)

    # ------------------------------------------------------------------
    # Channel queries
    # ------------------------------------------------------------------

    async def store_channels(
        self,
        filters: Optional[Dict[str, Any]],
        sort: SortSpec,
        channels: List[Channel],
        mode: QueryMode = QueryMode.APPEND,
    ) -> None:
        """
        Persist a page of query results and record it in the query cache.

        Channels, their state and the query map entry go out in a single
        atomic multi-write.
        """
        self._guard()
        existing = await self.driver.multi_get(
            self.session, [keys.channel_key(c.cid) for c in channels]
        )

        storables: Storables = {}
        for channel in channels:
            convert_channel_to_storable(channel, storables, existing.get(keys.channel_key(channel.cid)))

        existing_ids = None
        if QueryMode(mode) == QueryMode.APPEND:
            existing_ids = await self.queries.get_channel_ids(filters, sort)
        query_row = self.queries.build_row(filters, sort, [c.cid for c in channels], mode, existing_ids)
        storables[keys.query_key(query_row["id"])] = query_row

        await self._write(storables)
        logger.info(f"Stored {len(channels)} channels ({QueryMode(mode).value}) in {len(storables)} rows")

    async def query_channels(
        self,
        filters: Optional[Dict[str, Any]],
        sort: SortSpec,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Channel]:
        """
        Cached channels for a query, fully hydrated.

        Args:
            filters: Query filters
            sort: Sort mapping; only allow-listed fields are honored
            offset: Channels to skip after sorting
            limit: Maximum channels (defaults to ``query_channels_limit``)
        """
        self._guard()
        channel_ids = await self.queries.get_channel_ids(filters, sort)
        if not channel_ids:
            return []

        found = await self.driver.multi_get(self.session, [keys.channel_key(cid) for cid in channel_ids])
        rows = [found[keys.channel_key(cid)] for cid in channel_ids if keys.channel_key(cid) in found]
        return await self.hydration.hydrate_channels(
            rows,
            sort=sort,
            offset=offset,
            limit=self.query_channels_limit if limit is None else limit,
        )

    async def get_channel(self, cid: str) -> Optional[Channel]:
        self._guard()
        row = await self.driver.get_item(self.session, keys.channel_key(cid))
        if row is None:
            return None
        channels = await self.hydration.hydrate_channels([row])
        return channels[0]

    async def query_messages(
        self,
        cid: str,
        anchor_message_id: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> List[Message]:
        """
        One page of a channel's messages, starting at the anchor message.

        Returns an empty list when the anchor is not stored.
        """
        self._guard()
        message_ids = await self.driver.find_ids(self.session, keys.MESSAGES, "cid", cid)
        if not message_ids:
            return []
        found = await self.driver.multi_get(self.session, [keys.message_key(id) for id in message_ids])
        return await self.hydration.hydrate_messages(
            list(found.values()),
            anchor_id=anchor_message_id,
            page_size=page_size or self.message_page_size,
        )

    # ------------------------------------------------------------------
    # Channel updates
    # ------------------------------------------------------------------

    async def update_channel_data(self, channel: Channel) -> None:
        """
        Update a channel's own fields, keeping its stored members and messages.

        Unknown channels are stored in full.
        """
        self._guard()
        key = keys.channel_key(channel.cid)
        row = await self.driver.get_item(self.session, key)
        if row is None:
            storables: Storables = {}
            convert_channel_to_storable(channel, storables)
            await self._write(storables)
            return

        row = dict(row)
        row["extra_data"] = channel.extra_data
        if channel.created_at is not None:
            row["created_at"] = to_iso_utc(channel.created_at)
        if channel.updated_at is not None:
            row["updated_at"] = to_iso_utc(channel.updated_at)
        row["last_message_at"] = latest_timestamp(row.get("last_message_at"), to_iso_utc(channel.last_message_at))
        await self.driver.set_item(self.session, key, row)

    async def truncate_channel(self, cid: str) -> None:
        """Drop every stored message of the channel and clear ``last_message_at``."""
        self._guard()
        message_ids = await self.driver.find_ids(self.session, keys.MESSAGES, "cid", cid)
        await self.driver.remove_items(self.session, [keys.message_key(id) for id in message_ids])

        key = keys.channel_key(cid)
        row = await self.driver.get_item(self.session, key)
        if row is not None:
            await self.driver.set_item(self.session, key, {**row, "last_message_at": None})
        logger.info(f"Truncated channel {cid} ({len(message_ids)} messages)")

    async def delete_channel(self, cid: str) -> None:
        """Remove a channel with its messages, reactions, members and reads."""
        self._guard()
        message_ids = await self.driver.find_ids(self.session, keys.MESSAGES, "cid", cid)
        member_ids = await self.driver.find_ids(self.session, keys.MEMBERS, "cid", cid)
        read_ids = await self.driver.find_ids(self.session, keys.READS, "cid", cid)

        doomed = [keys.channel_key(cid)]
        doomed += [keys.message_key(id) for id in message_ids]
        doomed += [keys.StorageKey(keys.MEMBERS, id) for id in member_ids]
        doomed += [keys.StorageKey(keys.READS, id) for id in read_ids]
        reaction_ids = await self.driver.find_ids_in(self.session, keys.REACTIONS, "message_id", message_ids)
        for ids in reaction_ids.values():
            doomed += [keys.reaction_key(id) for id in ids]

        await self.driver.remove_items(self.session, doomed)
        logger.info(f"Deleted channel {cid}")

    # ------------------------------------------------------------------
    # Messages and reactions
    # ------------------------------------------------------------------

    async def insert_message_for_channel(self, cid: str, message: Message) -> None:
        await self.insert_messages_for_channel(cid, [message])

    async def insert_messages_for_channel(self, cid: str, messages: List[Message]) -> None:
        """
        Store new messages of a channel.

        The channel's ``last_message_at`` moves forward only when a message is
        newer than the stored value.

        Raises:
            ValueError: a message belongs to another channel
        """
        self._guard()
        for message in messages:
            if message.cid != cid:
                raise ValueError(f"message {message.id} belongs to {message.cid}, not {cid}")

        storables: Storables = {}
        for message in messages:
            convert_message_to_storable(message, storables)

        key = keys.channel_key(cid)
        row = await self.driver.get_item(self.session, key)
        if row is None:
            logger.warning(f"Inserting messages for unknown channel {cid}")
        else:
            last_message_at = row.get("last_message_at")
            for message in messages:
                last_message_at = latest_timestamp(last_message_at, to_iso_utc(message.created_at))
            storables[key] = {**row, "last_message_at": last_message_at}

        await self._write(storables)

    async def update_message(self, message: Message) -> bool:
        """
        Replace a stored message with its new state.

        Returns:
            False if the message is not stored (nothing is written)
        """
        self._guard()
        if await self.driver.get_item(self.session, keys.message_key(message.id)) is None:
            logger.debug(f"Ignoring update for unknown message {message.id}")
            return False

        storables: Storables = {}
        convert_message_to_storable(message, storables)
        await self._write(storables)
        return True

    async def add_reaction(self, message: Message) -> bool:
        """Persist a message whose reactions now include a new reaction."""
        return await self.update_message(message)

    async def delete_reaction(self, message: Message, reaction: Reaction) -> bool:
        """Persist a message after a reaction was removed and drop the reaction row."""
        updated = await self.update_message(message)
        if updated:
            await self.driver.remove_items(self.session, [keys.reaction_key(reaction.id)])
        return updated

    # ------------------------------------------------------------------
    # Members and read states
    # ------------------------------------------------------------------

    async def add_member(self, cid: str, member: Member) -> None:
        self._guard()
        storables: Storables = {}
        member_id = convert_member_to_storable(cid, member, storables)

        key = keys.channel_key(cid)
        row = await self.driver.get_item(self.session, key)
        if row is not None:
            member_ids = member_ids_of(row)
            if member_id not in member_ids:
                storables[key] = {**row, "members": dump_list(member_ids + [member_id])}

        await self._write(storables)

    async def update_member(self, cid: str, member: Member) -> bool:
        """Replace a stored member; returns False if the user is not a member."""
        self._guard()
        if await self.driver.get_item(self.session, keys.member_key(cid, member.user_id)) is None:
            return False

        storables: Storables = {}
        convert_member_to_storable(cid, member, storables)
        await self._write(storables)
        return True

    async def remove_member(self, cid: str, user_id: str) -> None:
        """Remove a member and its read state from the channel."""
        self._guard()
        removed = keys.composite_id(cid, user_id)

        key = keys.channel_key(cid)
        row = await self.driver.get_item(self.session, key)
        if row is not None:
            member_ids = [id for id in member_ids_of(row) if id != removed]
            await self.driver.set_item(self.session, key, {**row, "members": dump_list(member_ids)})

        await self.driver.remove_items(
            self.session,
            [keys.member_key(cid, user_id), keys.read_key(cid, user_id)],
        )

    async def update_read_state(
        self,
        cid: str,
        user: User,
        last_read: datetime,
        unread_messages: int = 0,
    ) -> bool:
        """
        Record a read-state push for a channel member.

        Returns:
            False when the user is not a member (no read state is created)
        """
        self._guard()
        if await self.driver.get_item(self.session, keys.member_key(cid, user.id)) is None:
            logger.debug(f"Ignoring read state of non-member {user.id} in {cid}")
            return False

        storables: Storables = {}
        convert_read_to_storable(
            cid,
            Read(user=user, last_read=last_read, unread_messages=unread_messages),
            storables,
        )
        await self._write(storables)
        return True

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    async def delete_all(self) -> None:
        """Remove every cached entry of the current user."""
        self._guard()
        await self.driver.delete_all(self.session)


async def open_store(user_id: str, settings: Settings = default_settings) -> OfflineStore:
    """
    Build the configured driver and open a store for ``user_id``.

    Application startup entry point: configures logging, selects the backend
    and runs the schema migration.
    """
    configure_logging(settings)
    driver = create_driver(settings)
    return await OfflineStore.open(driver, user_id, settings)
