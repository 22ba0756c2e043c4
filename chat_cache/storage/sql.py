"""
Relational storage driver on SQLAlchemy Core (SQLite via aiosqlite).

Each managed table carries an ``owner`` column; all statements are scoped to
the session's user. ``PRAGMA user_version`` holds the schema marker.
"""
import logging
import time
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete, select, text
from sqlalchemy.ext.asyncio import AsyncEngine

from chat_cache.config import settings
from chat_cache.core.exceptions import StorageUnavailable
from chat_cache.core.keys import StorageKey
from chat_cache.models import MODELS, Base
from chat_cache.storage.base import Row, StorageDriver, StorageSession, storage_operation
from chat_cache.storage.engine import complete_row, create_engine, managed_tables

logger = logging.getLogger(__name__)


def _group_by_table(keys: List[StorageKey]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = defaultdict(list)
    for key in keys:
        grouped[key.table].append(key.id)
    return grouped


class SQLDriver(StorageDriver):
    """SQLite driver using Core statements; supports raw ``execute``."""

    name = "sql"
    supports_execute = True

    def __init__(
        self,
        database_url: str = settings.database_url,
        echo: bool = settings.debug,
        engine: Optional[AsyncEngine] = None,
    ):
        super().__init__()
        self.database_url = database_url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = engine
        self._owns_engine = engine is None

    async def _connect(self) -> None:
        if self.engine is None:
            self.engine = create_engine(self.database_url, echo=self.echo)
        if self.engine.dialect.name != "sqlite":
            raise StorageUnavailable(
                f"sql storage requires SQLite, got dialect {self.engine.dialect.name!r}"
            )
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def _disconnect(self) -> None:
        if self.engine is not None and self._owns_engine:
            await self.engine.dispose()
            self.engine = None

    @staticmethod
    def _table(name: str):
        try:
            return MODELS[name].__table__
        except KeyError:
            raise ValueError(f"Unknown table {name!r}") from None

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @storage_operation
    async def _get_item(self, owner: str, key: StorageKey) -> Optional[Row]:
        table = self._table(key.table)
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(table).where(table.c.owner == owner, table.c.id == key.id)
            )
            row = result.mappings().first()
        return self._strip(row) if row is not None else None

    @storage_operation
    async def _multi_get(self, owner: str, keys: List[StorageKey]) -> Dict[StorageKey, Row]:
        found: Dict[StorageKey, Row] = {}
        async with self.engine.connect() as conn:
            for table_name, ids in _group_by_table(keys).items():
                table = self._table(table_name)
                result = await conn.execute(
                    select(table).where(table.c.owner == owner, table.c.id.in_(ids))
                )
                for row in result.mappings():
                    found[StorageKey(table_name, row["id"])] = self._strip(row)
        return found

    @storage_operation
    async def _multi_set(self, owner: str, storables: Dict[StorageKey, Row]) -> None:
        grouped: Dict[str, List[Row]] = defaultdict(list)
        for key, row in storables.items():
            model = MODELS[key.table]
            grouped[key.table].append({**complete_row(model, {**row, "id": key.id}), "owner": owner})

        # Replace rows inside one transaction
        async with self.engine.begin() as conn:
            for table_name, rows in grouped.items():
                table = self._table(table_name)
                await conn.execute(
                    delete(table).where(
                        table.c.owner == owner,
                        table.c.id.in_([row["id"] for row in rows]),
                    )
                )
                await conn.execute(table.insert(), rows)

    @storage_operation
    async def _remove_items(self, owner: str, keys: List[StorageKey]) -> None:
        async with self.engine.begin() as conn:
            for table_name, ids in _group_by_table(keys).items():
                table = self._table(table_name)
                await conn.execute(
                    delete(table).where(table.c.owner == owner, table.c.id.in_(ids))
                )

    @storage_operation
    async def _find_ids(self, owner: str, table: str, field: str, values: List[str]) -> Dict[str, List[str]]:
        sql_table = self._table(table)
        found: Dict[str, List[str]] = defaultdict(list)
        async with self.engine.connect() as conn:
            result = await conn.execute(
                select(sql_table.c.id, sql_table.c[field]).where(
                    sql_table.c.owner == owner,
                    sql_table.c[field].in_(values),
                )
            )
            for row_id, value in result:
                found[value].append(row_id)
        return found

    @storage_operation
    async def _delete_all(self, owner: str) -> None:
        async with self.engine.begin() as conn:
            for table in managed_tables():
                await conn.execute(delete(table).where(table.c.owner == owner))

    @storage_operation
    async def execute(
        self,
        session: StorageSession,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        debug_string: str = "query",
    ) -> List[Row]:
        """
        Run a raw SQL statement and return its rows as dicts.

        Statements see the whole database; callers scope them with an
        ``owner`` parameter, which is filled from the session when absent.

        Example:
            ```python
            rows = await driver.execute(
                session,
                "SELECT cids FROM query_channels_map WHERE owner = :owner AND id = :id",
                {"id": fingerprint},
            )
            ```
        """
        owner = self._check(session)
        bound = {"owner": owner, **(params or {})}
        started = time.perf_counter()
        async with self.engine.begin() as conn:
            result = await conn.execute(text(query), bound)
            rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        logger.debug(f"Time taken for {debug_string}: {(time.perf_counter() - started) * 1000:.1f}ms")
        return rows

    @staticmethod
    def _strip(row: Mapping[str, Any]) -> Row:
        return {name: value for name, value in row.items() if name != "owner"}

    # ------------------------------------------------------------------
    # Schema hooks
    # ------------------------------------------------------------------

    @storage_operation
    async def read_version(self) -> int:
        await self.connect()
        async with self.engine.connect() as conn:
            result = await conn.exec_driver_sql("PRAGMA user_version")
            return int(result.scalar() or 0)

    @storage_operation
    async def write_version(self, version: int) -> None:
        await self.connect()
        async with self.engine.begin() as conn:
            await conn.exec_driver_sql(f"PRAGMA user_version = {int(version)}")

    @storage_operation
    async def drop_tables(self) -> None:
        await self.connect()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all, tables=managed_tables())

    @storage_operation
    async def create_tables(self) -> None:
        await self.connect()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=managed_tables())
