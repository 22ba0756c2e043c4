"""
Tests for QueryCache.
"""
import pytest

from chat_cache.core import keys
from chat_cache.core.keys import fingerprint
from chat_cache.query_cache import QueryCache
from chat_cache.schemas import QueryMode

FILTERS = {"type": "messaging", "members": {"$in": ["alice"]}}
SORT = {"last_message_at": -1}


@pytest.mark.asyncio
class TestQueryCache:
    """Test cases for cached query results."""

    async def test_unknown_query_is_empty(self, driver, session):
        cache = QueryCache(driver, session)

        assert await cache.get_channel_ids(FILTERS, SORT) == []
        assert await cache.last_synced_at(FILTERS, SORT) is None

    async def test_append_after_reload(self, driver, session):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a", "b"], QueryMode.RELOAD)
        await cache.record_query_result(FILTERS, SORT, ["c", "d"], QueryMode.APPEND)

        assert await cache.get_channel_ids(FILTERS, SORT) == ["a", "b", "c", "d"]

    async def test_append_keeps_duplicates(self, driver, session):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a", "b"], QueryMode.RELOAD)
        await cache.record_query_result(FILTERS, SORT, ["b", "c"], QueryMode.APPEND)

        assert await cache.get_channel_ids(FILTERS, SORT) == ["a", "b", "b", "c"]

    @pytest.mark.parametrize("mode", [QueryMode.RELOAD, QueryMode.REFRESH])
    async def test_reload_and_refresh_replace(self, driver, session, mode):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a", "b", "c"], QueryMode.RELOAD)
        await cache.record_query_result(FILTERS, SORT, ["d"], mode)

        assert await cache.get_channel_ids(FILTERS, SORT) == ["d"]

    async def test_reordered_filters_share_an_entry(self, driver, session):
        cache = QueryCache(driver, session)
        reordered = {"members": {"$in": ["alice"]}, "type": "messaging"}

        await cache.record_query_result(FILTERS, SORT, ["a"], QueryMode.RELOAD)

        assert await cache.get_channel_ids(reordered, SORT) == ["a"]

    async def test_different_sort_is_a_different_entry(self, driver, session):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a"], QueryMode.RELOAD)

        assert await cache.get_channel_ids(FILTERS, {"created_at": -1}) == []

    async def test_records_sync_time(self, driver, session):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a"], QueryMode.RELOAD)

        assert await cache.last_synced_at(FILTERS, SORT) is not None

    async def test_row_is_stored_under_fingerprint(self, driver, session):
        cache = QueryCache(driver, session)

        await cache.record_query_result(FILTERS, SORT, ["a"], QueryMode.RELOAD)
        row = await driver.get_item(session, keys.query_key(fingerprint(FILTERS, SORT)))

        assert row["cids"] == '["a"]'

    async def test_build_row_does_not_write(self, driver, session):
        cache = QueryCache(driver, session)

        row = cache.build_row(FILTERS, SORT, ["c"], QueryMode.APPEND, existing_ids=["a", "b"])

        assert row["cids"] == '["a","b","c"]'
        assert await cache.get_channel_ids(FILTERS, SORT) == []
