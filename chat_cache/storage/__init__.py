"""
Storage drivers: one interface, three interchangeable backends.
"""
from chat_cache.storage.base import Row, StorageDriver, StorageSession
from chat_cache.storage.kv import KeyValueDriver
from chat_cache.storage.sql import SQLDriver
from chat_cache.storage.object_store import ObjectStoreDriver
from chat_cache.storage.factory import create_driver

__all__ = [
    "Row",
    "StorageDriver",
    "StorageSession",
    "KeyValueDriver",
    "SQLDriver",
    "ObjectStoreDriver",
    "create_driver",
]
