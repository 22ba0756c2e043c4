"""
Embedded object-store driver on the SQLAlchemy ORM.

Rows are persisted as mapped objects and upserted with ``session.merge``,
keyed by their (owner, id) identity. The schema marker is a ``SchemaMeta``
object that is not part of the managed tables.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from chat_cache.config import settings
from chat_cache.core.keys import StorageKey
from chat_cache.models import MODELS, Base, SchemaMeta
from chat_cache.storage.base import Row, StorageDriver, storage_operation
from chat_cache.storage.engine import complete_row, create_engine, create_session_factory, managed_tables

logger = logging.getLogger(__name__)

SCHEMA_META_ID = 1


class ObjectStoreDriver(StorageDriver):
    """ORM-backed driver storing one mapped object per row."""

    name = "object"

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
        self.session_factory: Optional[async_sessionmaker] = None

    async def _connect(self) -> None:
        if self.engine is None:
            self.engine = create_engine(self.database_url, echo=self.echo)
        self.session_factory = create_session_factory(self.engine)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[SchemaMeta.__table__])

    async def _disconnect(self) -> None:
        self.session_factory = None
        if self.engine is not None and self._owns_engine:
            await self.engine.dispose()
            self.engine = None

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @storage_operation
    async def _get_item(self, owner: str, key: StorageKey) -> Optional[Row]:
        async with self.session_factory() as db:
            instance = await db.get(MODELS[key.table], {"owner": owner, "id": key.id})
            return instance.to_row() if instance is not None else None

    @storage_operation
    async def _multi_get(self, owner: str, keys: List[StorageKey]) -> Dict[StorageKey, Row]:
        grouped: Dict[str, List[str]] = defaultdict(list)
        for key in keys:
            grouped[key.table].append(key.id)

        found: Dict[StorageKey, Row] = {}
        async with self.session_factory() as db:
            for table_name, ids in grouped.items():
                model = MODELS[table_name]
                result = await db.execute(
                    select(model).where(model.owner == owner, model.id.in_(ids))
                )
                for instance in result.scalars():
                    found[StorageKey(table_name, instance.id)] = instance.to_row()
        return found

    @storage_operation
    async def _multi_set(self, owner: str, storables: Dict[StorageKey, Row]) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                for key, row in storables.items():
                    model = MODELS[key.table]
                    values = complete_row(model, {**row, "id": key.id})
                    await db.merge(model(owner=owner, **values))

    @storage_operation
    async def _remove_items(self, owner: str, keys: List[StorageKey]) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                for key in keys:
                    instance = await db.get(MODELS[key.table], {"owner": owner, "id": key.id})
                    if instance is not None:
                        await db.delete(instance)

    @storage_operation
    async def _find_ids(self, owner: str, table: str, field: str, values: List[str]) -> Dict[str, List[str]]:
        model = MODELS[table]
        column = getattr(model, field)
        found: Dict[str, List[str]] = defaultdict(list)
        async with self.session_factory() as db:
            result = await db.execute(
                select(model.id, column).where(model.owner == owner, column.in_(values))
            )
            for row_id, value in result:
                found[value].append(row_id)
        return found

    @storage_operation
    async def _delete_all(self, owner: str) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                for model in MODELS.values():
                    await db.execute(delete(model).where(model.owner == owner))

    # ------------------------------------------------------------------
    # Schema hooks
    # ------------------------------------------------------------------

    @storage_operation
    async def read_version(self) -> int:
        await self.connect()
        async with self.session_factory() as db:
            meta = await db.get(SchemaMeta, SCHEMA_META_ID)
            return meta.version if meta is not None else 0

    @storage_operation
    async def write_version(self, version: int) -> None:
        await self.connect()
        async with self.session_factory() as db:
            async with db.begin():
                await db.merge(SchemaMeta(id=SCHEMA_META_ID, version=int(version)))

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
