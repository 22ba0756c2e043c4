"""
Query cache: ordered channel ids per (filters, sort) fingerprint.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from chat_cache.core.keys import SortSpec, fingerprint, query_key
from chat_cache.mappers.encoding import dump_list, load_list
from chat_cache.schemas.query import QueryMode
from chat_cache.storage.base import Row, StorageDriver, StorageSession
from chat_cache.utils.datetime_utils import parse_iso_utc, to_iso_utc, utc_now

logger = logging.getLogger(__name__)

SELECT_QUERY_ROW = "SELECT cids, last_synced_at FROM query_channels_map WHERE owner = :owner AND id = :id"


class QueryCache:
    """
    Materialized, possibly stale, view of server-side channel queries.

    Stored lists are not de-duplicated; hydration resolves duplicates by id.
    """

    def __init__(self, driver: StorageDriver, session: StorageSession):
        self.driver = driver
        self.session = session

    def build_row(
        self,
        filters: Optional[Dict[str, Any]],
        sort: SortSpec,
        channel_ids: List[str],
        mode: QueryMode,
        existing_ids: Optional[List[str]] = None,
    ) -> Row:
        """
        Compute the map entry for a query result without writing it.

        Lets callers batch the entry with the channel rows in one multi-write.
        """
        mode = QueryMode(mode)
        if mode == QueryMode.APPEND:
            cids = list(existing_ids or []) + list(channel_ids)
        else:
            cids = list(channel_ids)

        return {
            "id": fingerprint(filters, sort),
            "cids": dump_list(cids),
            "last_synced_at": to_iso_utc(utc_now()),
        }

    async def record_query_result(
        self,
        filters: Optional[Dict[str, Any]],
        sort: SortSpec,
        channel_ids: List[str],
        mode: QueryMode = QueryMode.APPEND,
    ) -> List[str]:
        """
        Store the channel ids returned by a query.

        Args:
            filters: Query filters
            sort: Query sort
            channel_ids: Channel cids in server order
            mode: RELOAD/REFRESH replace the list, APPEND concatenates

        Returns:
            The stored id list
        """
        existing = None
        if QueryMode(mode) == QueryMode.APPEND:
            existing = await self.get_channel_ids(filters, sort)

        row = self.build_row(filters, sort, channel_ids, mode, existing)
        await self.driver.set_item(self.session, query_key(row["id"]), row)
        cids = load_list(row["cids"])
        logger.debug(f"Recorded {len(channel_ids)} channel ids ({mode}) -> {len(cids)} cached")
        return cids

    async def get_channel_ids(self, filters: Optional[Dict[str, Any]], sort: SortSpec) -> List[str]:
        """Cached channel cids for the query, in stored order; [] when unknown."""
        row = await self._get_row(filters, sort)
        return load_list(row["cids"]) if row else []

    async def last_synced_at(self, filters: Optional[Dict[str, Any]], sort: SortSpec) -> Optional[datetime]:
        row = await self._get_row(filters, sort)
        return parse_iso_utc(row.get("last_synced_at")) if row else None

    async def _get_row(self, filters: Optional[Dict[str, Any]], sort: SortSpec) -> Optional[Row]:
        query_fingerprint = fingerprint(filters, sort)
        if self.driver.supports_execute:
            rows = await self.driver.execute(
                self.session,
                SELECT_QUERY_ROW,
                {"id": query_fingerprint},
                debug_string="query cids for filter and sort",
            )
            return rows[0] if rows else None
        return await self.driver.get_item(self.session, query_key(query_fingerprint))
