"""
Base model classes and mixins for the SQL-backed drivers.

Rows carry no foreign keys: references between tables are plain ids and are
resolved during hydration.
"""
from typing import Any, Dict, List, Type

from sqlalchemy import String
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Includes AsyncAttrs mixin for async attribute access.
    """
    pass


class OwnedRowMixin:
    """
    Composite primary key (owner, id).

    ``owner`` is the user whose session wrote the row; every read and write
    is scoped to it so cached data of different local users never collide.
    """

    owner: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        doc="User namespace the row belongs to"
    )

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        doc="Row id within the namespace"
    )

    def to_row(self) -> Dict[str, Any]:
        """Plain row dict without the owner column."""
        return {name: getattr(self, name) for name in row_columns(type(self))}


def row_columns(model: Type[Base]) -> List[str]:
    """Column names of a model as exposed in row dicts."""
    return [column.name for column in model.__table__.columns if column.name != "owner"]
