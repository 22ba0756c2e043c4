"""
Engine and session factories for the SQL-backed drivers.
Uses SQLAlchemy 2.0 with async support.
"""
from typing import Any, Dict, Type

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from chat_cache.models import Base, MODELS


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine.

    In-memory SQLite databases are bound to a single shared connection so that
    every session sees the same data.
    """
    kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if ":memory:" in database_url:
        kwargs["poolclass"] = StaticPool
    return create_async_engine(database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create the async session factory used by the object store."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def managed_tables():
    """Table objects of every managed (droppable) table."""
    return [model.__table__ for model in MODELS.values()]


def complete_row(model: Type[Base], row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill absent columns with their column default (or None).

    Bulk inserts need every parameter dict to carry the same keys.
    """
    completed: Dict[str, Any] = {}
    for column in model.__table__.columns:
        if column.name == "owner":
            continue
        if column.name in row:
            completed[column.name] = row[column.name]
        elif column.default is not None and column.default.is_scalar:
            completed[column.name] = column.default.arg
        else:
            completed[column.name] = None
    return completed
