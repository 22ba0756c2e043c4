"""
Channel, member and read-state tables.
"""
from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_cache.models.base import Base, OwnedRowMixin


class ChannelRecord(Base, OwnedRowMixin):
    """
    Flattened channel keyed by cid.

    ``members`` and ``pinned_messages`` hold JSON-encoded id lists.
    """

    __tablename__ = "channels"

    channel_id: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    members: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    pinned_messages: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    last_message_at: Mapped[str | None] = mapped_column(String(40), nullable=True)


class MemberRecord(Base, OwnedRowMixin):
    """Channel membership; id is the composite of cid and user id."""

    __tablename__ = "members"

    cid: Mapped[str] = mapped_column(String(255), nullable=False)
    user: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_admin: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_moderator: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_owner: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    joined_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    left_at: Mapped[str | None] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        Index("idx_members_owner_cid", "owner", "cid"),
    )


class ReadRecord(Base, OwnedRowMixin):
    """Read state of one member in one channel."""

    __tablename__ = "reads"

    cid: Mapped[str] = mapped_column(String(255), nullable=False)
    user: Mapped[str] = mapped_column(String(255), nullable=False)
    last_read: Mapped[str] = mapped_column(String(40), nullable=False)
    unread_messages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("idx_reads_owner_cid", "owner", "cid"),
    )
