"""
Storage driver selection.
"""
import logging

from chat_cache.config import Settings, settings as default_settings
from chat_cache.storage.base import StorageDriver
from chat_cache.storage.kv import KeyValueDriver
from chat_cache.storage.object_store import ObjectStoreDriver
from chat_cache.storage.sql import SQLDriver

logger = logging.getLogger(__name__)


def create_driver(settings: Settings = default_settings) -> StorageDriver:
    """
    Build the single storage driver configured for this application.

    Args:
        settings: Settings naming the backend and its connection URL

    Returns:
        Unconnected driver instance
    """
    backend = settings.storage_backend
    if backend == "kv":
        driver: StorageDriver = KeyValueDriver(
            redis_url=settings.redis_url,
            password=settings.redis_password,
            prefix=settings.key_prefix,
        )
    elif backend == "sql":
        driver = SQLDriver(database_url=settings.database_url, echo=settings.debug)
    elif backend == "object":
        driver = ObjectStoreDriver(database_url=settings.database_url, echo=settings.debug)
    else:
        raise ValueError(f"Unknown storage backend {backend!r}")

    logger.info(f"Selected {driver.name} storage backend")
    return driver
