"""
Query cache table and the schema marker used by the object store.
"""
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_cache.models.base import Base, OwnedRowMixin


class QueryChannelsMapRecord(Base, OwnedRowMixin):
    """Ordered channel cids for one (filters, sort) fingerprint."""

    __tablename__ = "query_channels_map"

    cids: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    last_synced_at: Mapped[str | None] = mapped_column(String(40), nullable=True)


class SchemaMeta(Base):
    """Single-row schema version marker; survives destructive migrations."""

    __tablename__ = "schema_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
