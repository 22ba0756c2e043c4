"""
Scratch buffer type shared by the mappers.
"""
from typing import Dict

from chat_cache.core.keys import StorageKey
from chat_cache.storage.base import Row

# Rows collected for one atomic multi-write, keyed by storage key
Storables = Dict[StorageKey, Row]
