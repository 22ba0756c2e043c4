"""
User table.
"""
from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_cache.models.base import Base, OwnedRowMixin


class UserRecord(Base, OwnedRowMixin):
    """Flattened user; referenced by id from every other table."""

    __tablename__ = "users"

    role: Mapped[str | None] = mapped_column(String(64), nullable=True)
    online: Mapped[str | None] = mapped_column(String(8), nullable=True, doc="'true' or 'false'")
    banned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_active: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)
