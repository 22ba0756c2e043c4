"""
Pytest configuration and fixtures for tests.
Provides a storage driver per backend, migrated stores and entity factories.
"""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from chat_cache.config import Settings
from chat_cache.schema_manager import SchemaManager
from chat_cache.schemas import Channel, Member, Message, Read, User
from chat_cache.storage import KeyValueDriver, ObjectStoreDriver, SQLDriver, StorageDriver
from chat_cache.store import OfflineStore

# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SETTINGS = Settings(
    schema_version=2,
    message_page_size=100,
    query_channels_limit=30,
    query_retry_attempts=3,
    query_retry_delay=2.0,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_driver(backend: str) -> StorageDriver:
    if backend == "kv":
        client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
        return KeyValueDriver(prefix="test", client=client)
    if backend == "sql":
        return SQLDriver(database_url=TEST_DATABASE_URL)
    return ObjectStoreDriver(database_url=TEST_DATABASE_URL)


@pytest.fixture(params=["kv", "sql", "object"])
async def driver(request) -> AsyncGenerator[StorageDriver, None]:
    """Unmigrated driver, once per backend."""
    driver = build_driver(request.param)
    yield driver
    await driver.disconnect()


@pytest.fixture
async def session(driver):
    """Session for user alice on a migrated driver."""
    await SchemaManager(driver).migrate_if_needed(TEST_SETTINGS.schema_version)
    session = await driver.open("alice")
    yield session
    await session.close()


@pytest.fixture
async def store(driver) -> AsyncGenerator[OfflineStore, None]:
    """Migrated store for user alice."""
    store = await OfflineStore.open(driver, "alice", TEST_SETTINGS)
    yield store
    await store.close()


@pytest.fixture
def make_user():
    def _make_user(user_id: str, **fields) -> User:
        return User(id=user_id, **fields)

    return _make_user


@pytest.fixture
def make_message(make_user):
    def _make_message(
        message_id: str,
        cid: str = "messaging:general",
        user_id: str = "alice",
        minutes: int = 0,
        **fields,
    ) -> Message:
        fields.setdefault("text", f"text of {message_id}")
        fields.setdefault("created_at", T0 + timedelta(minutes=minutes))
        return Message(id=message_id, cid=cid, user=make_user(user_id), **fields)

    return _make_message


@pytest.fixture
def make_channel(make_user):
    def _make_channel(
        channel_id: str,
        member_ids=("alice", "bob"),
        last_message_at: Optional[datetime] = None,
        **fields,
    ) -> Channel:
        members = [Member(user=make_user(user_id)) for user_id in member_ids]
        reads = [Read(user=make_user(user_id), last_read=T0) for user_id in member_ids]
        fields.setdefault("created_at", T0)
        return Channel(
            id=channel_id,
            type="messaging",
            members=members,
            read=reads,
            last_message_at=last_message_at,
            **fields,
        )

    return _make_channel
