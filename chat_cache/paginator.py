"""
Channel list pagination backed by the offline store.

Queries the remote service, writes each page through to the cache and keeps
the accumulated channel list. When the service cannot be reached the list
can be served from the cache instead.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from chat_cache.config import settings
from chat_cache.core.exceptions import QueryFailed
from chat_cache.core.keys import SortSpec
from chat_cache.schemas import Channel, QueryMode
from chat_cache.store import OfflineStore

logger = logging.getLogger(__name__)


class ChannelQueryClient(Protocol):
    """Remote channel query endpoint."""

    async def query_channels(
        self,
        filters: Optional[Dict[str, Any]],
        sort: SortSpec,
        limit: int,
        offset: int,
    ) -> List[Channel]:
        ...


@dataclass
class PaginatorStatus:
    loading_channels: bool = False
    loading_next_page: bool = False
    refreshing: bool = False
    error: bool = False
    last_error: Optional[QueryFailed] = None

    @property
    def in_flight(self) -> bool:
        return self.loading_channels or self.loading_next_page or self.refreshing


# Status flag raised while a query of each mode runs
_FLAGS = {
    QueryMode.RELOAD: "loading_channels",
    QueryMode.APPEND: "loading_next_page",
    QueryMode.REFRESH: "refreshing",
}


class ChannelListPaginator:
    """
    Paginated channel list for one (filters, sort) query.

    A reload empties the visible list, then starts and supersedes queries
    already in flight; results of superseded queries are discarded. Next-page and refresh requests are
    ignored while any query is running.
    """

    def __init__(
        self,
        client: ChannelQueryClient,
        store: OfflineStore,
        filters: Optional[Dict[str, Any]] = None,
        sort: SortSpec = None,
        limit: int = settings.query_channels_limit,
        retry_attempts: int = settings.query_retry_attempts,
        retry_delay: float = settings.query_retry_delay,
    ):
        self.client = client
        self.store = store
        self.filters = filters or {}
        self.sort = sort
        self.limit = limit
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

        self.channels: List[Channel] = []
        self.offset = 0
        self.has_next_page = True
        self.active = False
        self.status = PaginatorStatus()
        self._token = 0
        self._reload_token = 0
        self._flag_owners: Dict[str, int] = {}

    async def reload(self) -> List[Channel]:
        """Query the first page, replacing the current list."""
        return await self._query(QueryMode.RELOAD)

    async def load_next_page(self) -> List[Channel]:
        if not self.has_next_page or self.status.in_flight:
            logger.debug("Skipping next page: nothing to load or a query is running")
            return self.channels
        return await self._query(QueryMode.APPEND)

    async def refresh(self) -> List[Channel]:
        """Re-run the first page query and replace the visible window."""
        if self.status.in_flight:
            logger.debug("Skipping refresh: a query is running")
            return self.channels
        return await self._query(QueryMode.REFRESH)

    async def offline_channels(self) -> List[Channel]:
        """Channels of this query as last cached."""
        return await self.store.query_channels(
            self.filters,
            self.sort,
            offset=0,
            limit=max(len(self.channels), self.limit),
        )

    async def _query(self, mode: QueryMode) -> List[Channel]:
        self._token += 1
        token = self._token
        flag = _FLAGS[mode]

        if mode == QueryMode.RELOAD:
            self._reload_token = token
            self.channels = []
            self.offset = 0
            self.has_next_page = True
        offset = self.offset if mode == QueryMode.APPEND else 0

        setattr(self.status, flag, True)
        self._flag_owners[flag] = token
        self.status.error = False
        try:
            result = await self._fetch_with_retry(offset)
        except QueryFailed as e:
            if token >= self._reload_token:
                self.status.error = True
                self.status.last_error = e
            logger.warning(f"Channel query ({mode.value}) failed: {e}")
            return self.channels
        finally:
            if self._flag_owners.get(flag) == token:
                setattr(self.status, flag, False)

        if token < self._reload_token:
            logger.debug(f"Discarding superseded channel query ({mode.value})")
            return self.channels

        if mode == QueryMode.APPEND:
            self.channels = self.channels + result
        else:
            self.channels = list(result)
        self.offset = len(self.channels)
        self.has_next_page = len(result) >= self.limit
        self.active = True

        await self.store.store_channels(self.filters, self.sort, result, mode)
        return self.channels

    async def _fetch_with_retry(self, offset: int) -> List[Channel]:
        """
        Query one page, retrying with a fixed delay.

        Raises:
            QueryFailed: every attempt failed
        """
        attempts = self.retry_attempts + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return await self.client.query_channels(self.filters, self.sort, self.limit, offset)
            except Exception as e:
                last_error = e
                logger.warning(f"Channel query attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay)
        raise QueryFailed(f"channel query failed after {attempts} attempts", attempts, cause=last_error)
