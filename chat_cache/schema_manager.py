"""
Schema version tracking and destructive migration.

There is no data migration path between versions: when the stored marker
differs from the target, every managed table is dropped and recreated empty.
Losing the cached state on upgrade is expected.
"""
import logging

from chat_cache.config import settings
from chat_cache.core.exceptions import SchemaMismatch, StorageUnavailable
from chat_cache.storage.base import StorageDriver

logger = logging.getLogger(__name__)


class SchemaManager:
    """Gatekeeper for cache operations until the schema is current."""

    def __init__(self, driver: StorageDriver):
        self.driver = driver
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def current_version(self) -> int:
        """
        Read the persisted schema marker.

        Raises:
            StorageUnavailable: the marker cannot be read
        """
        return await self.driver.read_version()

    async def migrate_if_needed(self, target_version: int = settings.schema_version) -> bool:
        """
        Bring storage to ``target_version``.

        Args:
            target_version: Schema version the code expects

        Returns:
            True if storage was wiped and recreated, False if already current

        Raises:
            StorageUnavailable: the marker or tables could not be read/written;
                the manager stays not-ready until a later call succeeds
        """
        self._ready = False
        try:
            stored = await self.current_version()
            try:
                self._check(stored, target_version)
                migrated = False
            except SchemaMismatch as e:
                logger.warning(f"{e}; dropping all cached tables")
                await self.driver.drop_tables()
                migrated = True

            await self.driver.create_tables()
            if migrated:
                await self.driver.write_version(target_version)
        except StorageUnavailable as e:
            logger.error(f"Schema migration failed, cache disabled until retried: {e}")
            raise

        self._ready = True
        if migrated:
            logger.info(f"Migrated cache schema from version {stored} to {target_version}")
        return migrated

    def ensure_ready(self) -> None:
        """
        Refuse cache operations before a successful migration.

        Raises:
            StorageUnavailable: no successful ``migrate_if_needed`` yet
        """
        if not self._ready:
            raise StorageUnavailable("cache schema is not initialized; call migrate_if_needed()")

    @staticmethod
    def _check(stored: int, target: int) -> None:
        if stored != target:
            raise SchemaMismatch(stored, target)
