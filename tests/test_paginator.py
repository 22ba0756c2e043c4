"""
Tests for ChannelListPaginator.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from chat_cache.core.exceptions import QueryFailed
from chat_cache.paginator import ChannelListPaginator

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
FILTERS = {"type": "messaging"}
SORT = {"last_message_at": -1}


class FakeChannelClient:
    """Remote endpoint serving slices of a fixed channel list."""

    def __init__(self, channels, failures=0):
        self.channels = channels
        self.failures = failures
        self.calls = []
        self.gate = None

    async def query_channels(self, filters, sort, limit, offset):
        self.calls.append((limit, offset))
        if self.gate is not None and offset > 0:
            await self.gate.wait()
        if self.failures:
            self.failures -= 1
            raise ConnectionError("network unreachable")
        return self.channels[offset:offset + limit]


@pytest.fixture
def make_channels(make_channel):
    def _make_channels(prefix, count):
        # Newest first, matching SORT
        return [
            make_channel(f"{prefix}{i}", last_message_at=T0 - timedelta(hours=i))
            for i in range(count)
        ]

    return _make_channels


def ids(channels):
    return [c.id for c in channels]


@pytest.mark.asyncio
class TestChannelListPaginator:
    """Test cases for remote pagination with write-through caching."""

    async def test_reload_loads_first_page(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 5))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)
        assert paginator.active is False

        channels = await paginator.reload()

        assert ids(channels) == ["c0", "c1"]
        assert paginator.offset == 2
        assert paginator.has_next_page is True
        assert paginator.active is True
        assert client.calls == [(2, 0)]
        assert ids(await store.query_channels(FILTERS, SORT)) == ["c0", "c1"]

    async def test_next_pages_append(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 3))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)

        await paginator.reload()
        channels = await paginator.load_next_page()

        assert ids(channels) == ["c0", "c1", "c2"]
        assert paginator.has_next_page is False
        assert await store.queries.get_channel_ids(FILTERS, SORT) == [
            "messaging:c0",
            "messaging:c1",
            "messaging:c2",
        ]

        await paginator.load_next_page()
        assert client.calls == [(2, 0), (2, 2)]

    async def test_refresh_replaces_window(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 5))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)
        await paginator.reload()
        await paginator.load_next_page()

        client.channels = make_channels("r", 5)
        channels = await paginator.refresh()

        assert ids(channels) == ["r0", "r1"]
        assert paginator.offset == 2
        assert ids(await store.query_channels(FILTERS, SORT)) == ["r0", "r1"]

    async def test_in_flight_query_blocks_next_page_and_refresh(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 5))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)
        await paginator.reload()

        client.gate = asyncio.Event()
        pending = asyncio.create_task(paginator.load_next_page())
        await asyncio.sleep(0)
        assert paginator.status.loading_next_page is True

        await paginator.refresh()
        await paginator.load_next_page()
        assert client.calls == [(2, 0), (2, 2)]

        client.gate.set()
        await pending
        assert ids(paginator.channels) == ["c0", "c1", "c2", "c3"]
        assert paginator.status.in_flight is False

    async def test_reload_discards_superseded_results(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 5))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)
        await paginator.reload()

        client.gate = asyncio.Event()
        pending = asyncio.create_task(paginator.load_next_page())
        await asyncio.sleep(0)

        client.channels = make_channels("x", 5)
        await paginator.reload()
        client.gate.set()
        await pending

        assert ids(paginator.channels) == ["x0", "x1"]
        assert paginator.offset == 2
        assert paginator.status.loading_next_page is False
        assert await store.queries.get_channel_ids(FILTERS, SORT) == ["messaging:x0", "messaging:x1"]

    async def test_failed_reload_clears_previous_list(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 2))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2, retry_attempts=0)
        await paginator.reload()

        client.failures = 5
        channels = await paginator.reload()

        assert channels == []
        assert paginator.offset == 0
        assert paginator.status.error is True
        assert await store.queries.get_channel_ids(FILTERS, SORT) == ["messaging:c0", "messaging:c1"]

    async def test_retries_then_succeeds(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 2), failures=2)
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2, retry_delay=0)

        channels = await paginator.reload()

        assert ids(channels) == ["c0", "c1"]
        assert len(client.calls) == 3
        assert paginator.status.error is False

    async def test_exhausted_retries_leave_cache_untouched(self, store, make_channels, mocker):
        sleep = mocker.patch("chat_cache.paginator.asyncio.sleep", new_callable=AsyncMock)
        client = FakeChannelClient(make_channels("c", 5))
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2)
        await paginator.reload()

        client.failures = 10
        client.channels = make_channels("r", 5)
        channels = await paginator.refresh()

        assert ids(channels) == ["c0", "c1"]
        assert len(client.calls) == 1 + 4
        assert sleep.await_count == 3
        sleep.assert_awaited_with(2.0)
        assert paginator.status.error is True
        assert isinstance(paginator.status.last_error, QueryFailed)
        assert paginator.status.last_error.attempts == 4
        assert isinstance(paginator.status.last_error.cause, ConnectionError)
        assert paginator.status.refreshing is False
        assert await store.queries.get_channel_ids(FILTERS, SORT) == ["messaging:c0", "messaging:c1"]

    async def test_successful_query_clears_error(self, store, make_channels):
        client = FakeChannelClient(make_channels("c", 2), failures=1)
        paginator = ChannelListPaginator(client, store, FILTERS, SORT, limit=2, retry_attempts=0)

        await paginator.reload()
        assert paginator.status.error is True

        await paginator.reload()
        assert paginator.status.error is False
        assert ids(paginator.channels) == ["c0", "c1"]

    async def test_offline_channels_after_failure(self, store, make_channels):
        online = ChannelListPaginator(FakeChannelClient(make_channels("c", 3)), store, FILTERS, SORT, limit=3)
        await online.reload()

        offline = ChannelListPaginator(
            FakeChannelClient([], failures=10), store, FILTERS, SORT, limit=3, retry_delay=0
        )
        await offline.reload()

        assert offline.status.error is True
        assert ids(await offline.offline_channels()) == ["c0", "c1", "c2"]
