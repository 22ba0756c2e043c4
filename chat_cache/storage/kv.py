"""
Key-value storage driver on Redis.

For user with id U1234 rows live under:

1. ``chatcache:U1234@query_channels_map:{fingerprint}`` - channel cids for a query
2. ``chatcache:U1234@channels:{cid}`` - channel row
3. ``chatcache:U1234@messages:{message_id}`` - message row
4. ``chatcache:U1234@members:{cid}|{user_id}`` - member row
5. ``chatcache:U1234@reads:{cid}|{user_id}`` - read-state row
6. ``chatcache:U1234@reactions:{reaction_id}`` - reaction row
7. ``chatcache:U1234@users:{user_id}`` - user row

The user segment is percent-encoded (``john@example.com`` becomes
``john%40example.com``), so one user's keys never match another user's purge
pattern.

Secondary lookups (messages/members/reads by cid, reactions by message) are
Redis sets under ``chatcache:U1234@{table}.{field}:{value}``. The schema
marker is the un-namespaced ``chatcache:schema_version``.
"""
import json
import logging
import re
from typing import Dict, List, Optional

from redis import asyncio as aioredis

from chat_cache.config import settings
from chat_cache.core.keys import INDEXED_FIELDS, TABLES, StorageKey, owner_segment
from chat_cache.storage.base import Row, StorageDriver, storage_operation

logger = logging.getLogger(__name__)

# Keys deleted per DEL call while purging
DELETE_BATCH_SIZE = 500

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _escape_glob(value: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class KeyValueDriver(StorageDriver):
    """Redis-backed driver with JSON-encoded rows."""

    name = "kv"

    def __init__(
        self,
        redis_url: str = settings.redis_url,
        password: str = settings.redis_password,
        prefix: str = settings.key_prefix,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize the driver.

        Args:
            redis_url: Redis connection URL
            password: Redis password (empty for none)
            prefix: Namespace prefix for every key
            client: Pre-built client (its lifetime stays with the caller)
        """
        super().__init__()
        self.redis_url = redis_url
        self.password = password
        self.prefix = prefix
        self.redis: Optional[aioredis.Redis] = client
        self._owns_client = client is None

    # ------------------------------------------------------------------
    # Key rendering
    # ------------------------------------------------------------------

    def _key(self, owner: str, key: StorageKey) -> str:
        return key.render(self.prefix, owner)

    def _index_key(self, owner: str, table: str, field: str, value: str) -> str:
        return f"{self.prefix}:{owner_segment(owner)}@{table}.{field}:{value}"

    @property
    def _version_key(self) -> str:
        return f"{self.prefix}:schema_version"

    def _index_entries(self, owner: str, key: StorageKey, row: Row):
        for field in INDEXED_FIELDS.get(key.table, ()):
            value = row.get(field)
            if value is not None:
                yield self._index_key(owner, key.table, field, value), key.id

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def _connect(self) -> None:
        if self.redis is None:
            self.redis = await aioredis.from_url(
                self.redis_url,
                password=self.password if self.password else None,
                encoding="utf-8",
                decode_responses=True,
            )
        await self.redis.ping()

    async def _disconnect(self) -> None:
        if self.redis is not None and self._owns_client:
            await self.redis.close()
            self.redis = None

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @storage_operation
    async def _get_item(self, owner: str, key: StorageKey) -> Optional[Row]:
        value = await self.redis.get(self._key(owner, key))
        return json.loads(value) if value else None

    @storage_operation
    async def _multi_get(self, owner: str, keys: List[StorageKey]) -> Dict[StorageKey, Row]:
        values = await self.redis.mget([self._key(owner, key) for key in keys])
        return {key: json.loads(value) for key, value in zip(keys, values) if value}

    @storage_operation
    async def _multi_set(self, owner: str, storables: Dict[StorageKey, Row]) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.mset({self._key(owner, key): json.dumps(row) for key, row in storables.items()})
            for key, row in storables.items():
                for index_key, member in self._index_entries(owner, key, row):
                    pipe.sadd(index_key, member)
            await pipe.execute()

    @storage_operation
    async def _remove_items(self, owner: str, keys: List[StorageKey]) -> None:
        existing = await self._multi_get(owner, keys)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(*[self._key(owner, key) for key in keys])
            for key, row in existing.items():
                for index_key, member in self._index_entries(owner, key, row):
                    pipe.srem(index_key, member)
            await pipe.execute()

    @storage_operation
    async def _find_ids(self, owner: str, table: str, field: str, values: List[str]) -> Dict[str, List[str]]:
        index_keys = [self._index_key(owner, table, field, value) for value in values]
        async with self.redis.pipeline(transaction=False) as pipe:
            for index_key in index_keys:
                pipe.smembers(index_key)
            members = await pipe.execute()

        candidates = {id for ids in members for id in ids}
        if not candidates:
            return {}
        rows = await self._multi_get(owner, [StorageKey(table, id) for id in candidates])

        # Index entries are not rewritten when a row moves; drop stale members
        found: Dict[str, List[str]] = {}
        stale: Dict[str, List[str]] = {}
        for value, index_key, ids in zip(values, index_keys, members):
            for id in ids:
                row = rows.get(StorageKey(table, id))
                if row is not None and row.get(field) == value:
                    found.setdefault(value, []).append(id)
                else:
                    stale.setdefault(index_key, []).append(id)
        if stale:
            async with self.redis.pipeline(transaction=True) as pipe:
                for index_key, ids in stale.items():
                    pipe.srem(index_key, *ids)
                await pipe.execute()
        return found

    @storage_operation
    async def _delete_all(self, owner: str) -> None:
        await self._delete_matching(f"{_escape_glob(self.prefix)}:{owner_segment(owner)}@*")

    async def _delete_matching(self, pattern: str) -> int:
        batch: List[str] = []
        deleted = 0
        async for key in self.redis.scan_iter(match=pattern, count=DELETE_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= DELETE_BATCH_SIZE:
                deleted += await self.redis.delete(*batch)
                batch = []
        if batch:
            deleted += await self.redis.delete(*batch)
        return deleted

    # ------------------------------------------------------------------
    # Schema hooks
    # ------------------------------------------------------------------

    @storage_operation
    async def read_version(self) -> int:
        await self.connect()
        value = await self.redis.get(self._version_key)
        return int(value) if value else 0

    @storage_operation
    async def write_version(self, version: int) -> None:
        await self.connect()
        await self.redis.set(self._version_key, int(version))

    @storage_operation
    async def drop_tables(self) -> None:
        await self.connect()
        prefix = _escape_glob(self.prefix)
        deleted = 0
        for table in TABLES:
            deleted += await self._delete_matching(f"{prefix}:*@{table}[:.]*")
        logger.info(f"Dropped {deleted} key-value cache entries")

    async def create_tables(self) -> None:
        # Key-value tables exist implicitly
        await self.connect()
