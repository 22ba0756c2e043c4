"""
Storage driver interface.

A driver is a uniform capability set over one backend. Exactly one driver is
active per application; all data calls take the explicit ``StorageSession``
that scopes them to one local user.
"""
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from chat_cache.core.exceptions import OfflineStorageError, SessionError, StorageUnavailable
from chat_cache.core.keys import INDEXED_FIELDS, StorageKey

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def storage_operation(func):
    """Translate backend failures into StorageUnavailable, logging them once."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except OfflineStorageError:
            raise
        except Exception as e:
            operation = func.__name__.lstrip("_")
            logger.error(f"{self.name} storage {operation} failed: {e}")
            raise StorageUnavailable(f"{self.name} storage {operation} failed: {e}", cause=e) from e

    return wrapper


class StorageSession:
    """
    Per-user storage context.

    Lifecycle: ``session = await driver.open(user_id)`` ... ``await session.close()``.
    """

    def __init__(self, driver: "StorageDriver", user_id: str):
        self.driver = driver
        self.user_id = user_id
        self.closed = False

    async def close(self) -> None:
        await self.driver.close(self)

    async def __aenter__(self) -> "StorageSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<StorageSession user={self.user_id!r} driver={self.driver.name} {state}>"


class StorageDriver(ABC):
    """
    Base class for storage backends.

    Public methods validate the session and translate backend errors;
    subclasses implement the underscored primitives.
    """

    name = "base"
    supports_execute = False

    def __init__(self):
        self._active: Optional[StorageSession] = None
        self._connected = False

    # ------------------------------------------------------------------
    # Connection and session lifecycle
    # ------------------------------------------------------------------

    @storage_operation
    async def connect(self) -> None:
        """Open the underlying backend; idempotent."""
        if not self._connected:
            await self._connect()
            self._connected = True
            logger.info(f"Connected {self.name} storage")

    async def disconnect(self) -> None:
        """Close the backend and any open session."""
        if self._active is not None:
            self._active.closed = True
            self._active = None
        if self._connected:
            await self._disconnect()
            self._connected = False

    async def open(self, user_id: str) -> StorageSession:
        """
        Begin a session for ``user_id``.

        Raises:
            SessionError: another session is still open
            StorageUnavailable: the backend cannot be opened
        """
        if not user_id:
            raise SessionError("user_id is required to open a storage session")
        if self._active is not None and not self._active.closed:
            raise SessionError(
                f"session for user {self._active.user_id!r} is still open; close it first"
            )
        await self.connect()
        self._active = StorageSession(self, user_id)
        logger.debug(f"Opened {self.name} session for user {user_id}")
        return self._active

    async def close(self, session: StorageSession) -> None:
        if session.closed:
            return
        session.closed = True
        if self._active is session:
            self._active = None
        logger.debug(f"Closed {self.name} session for user {session.user_id}")

    def _check(self, session: StorageSession) -> str:
        if session.closed:
            raise SessionError(f"session for user {session.user_id!r} is closed")
        if session is not self._active:
            raise SessionError("session does not belong to the active driver session")
        return session.user_id

    # ------------------------------------------------------------------
    # Data capabilities
    # ------------------------------------------------------------------

    async def get_item(self, session: StorageSession, key: StorageKey, default: Any = None) -> Any:
        """Return the row stored under ``key`` or ``default``."""
        row = await self._get_item(self._check(session), key)
        return default if row is None else row

    async def set_item(self, session: StorageSession, key: StorageKey, value: Row) -> None:
        await self._multi_set(self._check(session), {key: value})

    async def multi_get(self, session: StorageSession, keys: Iterable[StorageKey]) -> Dict[StorageKey, Row]:
        """Fetch many rows in one round trip; missing keys are omitted."""
        owner = self._check(session)
        unique = list(dict.fromkeys(keys))
        if not unique:
            return {}
        return await self._multi_get(owner, unique)

    async def multi_set(self, session: StorageSession, storables: Mapping[StorageKey, Row]) -> None:
        """Write every row atomically."""
        owner = self._check(session)
        if storables:
            await self._multi_set(owner, dict(storables))

    async def remove_items(self, session: StorageSession, keys: Iterable[StorageKey]) -> None:
        owner = self._check(session)
        unique = list(dict.fromkeys(keys))
        if unique:
            await self._remove_items(owner, unique)

    async def find_ids(self, session: StorageSession, table: str, field: str, value: str) -> List[str]:
        """Ids of rows in ``table`` whose ``field`` equals ``value``, sorted."""
        return (await self.find_ids_in(session, table, field, [value]))[value]

    async def find_ids_in(
        self,
        session: StorageSession,
        table: str,
        field: str,
        values: Iterable[str],
    ) -> Dict[str, List[str]]:
        """``find_ids`` for several values in one lookup, keyed by value."""
        if field not in INDEXED_FIELDS.get(table, ()):
            raise ValueError(f"{table}.{field} is not an indexed field")
        owner = self._check(session)
        values = list(dict.fromkeys(values))
        if not values:
            return {}
        found = await self._find_ids(owner, table, field, values)
        return {value: sorted(found.get(value, [])) for value in values}

    async def delete_all(self, session: StorageSession) -> None:
        """Remove every entry namespaced under the session's user."""
        owner = self._check(session)
        await self._delete_all(owner)
        logger.info(f"Deleted all {self.name} cache entries for user {owner}")

    async def execute(
        self,
        session: StorageSession,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        debug_string: str = "query",
    ) -> List[Row]:
        """Run a raw query; only drivers with ``supports_execute`` implement it."""
        raise NotImplementedError(f"{self.name} storage does not support execute()")

    # ------------------------------------------------------------------
    # Schema hooks used by SchemaManager
    # ------------------------------------------------------------------

    @abstractmethod
    async def read_version(self) -> int:
        """Persisted schema version; 0 for fresh storage."""

    @abstractmethod
    async def write_version(self, version: int) -> None:
        ...

    @abstractmethod
    async def drop_tables(self) -> None:
        """Destroy every managed table, for all users."""

    @abstractmethod
    async def create_tables(self) -> None:
        ...

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _connect(self) -> None:
        ...

    @abstractmethod
    async def _disconnect(self) -> None:
        ...

    @abstractmethod
    async def _get_item(self, owner: str, key: StorageKey) -> Optional[Row]:
        ...

    @abstractmethod
    async def _multi_get(self, owner: str, keys: List[StorageKey]) -> Dict[StorageKey, Row]:
        ...

    @abstractmethod
    async def _multi_set(self, owner: str, storables: Dict[StorageKey, Row]) -> None:
        ...

    @abstractmethod
    async def _remove_items(self, owner: str, keys: List[StorageKey]) -> None:
        ...

    @abstractmethod
    async def _find_ids(self, owner: str, table: str, field: str, values: List[str]) -> Dict[str, List[str]]:
        ...

    @abstractmethod
    async def _delete_all(self, owner: str) -> None:
        ...
