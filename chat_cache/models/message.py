"""
Message and reaction tables.
"""
from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chat_cache.models.base import Base, OwnedRowMixin


class MessageRecord(Base, OwnedRowMixin):
    """
    Flattened message.

    List and map fields are JSON text; ``user`` and the reaction lists hold
    ids only.
    """

    __tablename__ = "messages"

    cid: Mapped[str] = mapped_column(String(255), nullable=False)
    text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    type: Mapped[str] = mapped_column(String(32), default="regular", nullable=False)
    user: Mapped[str] = mapped_column(String(255), nullable=False)
    attachments: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    mentioned_users: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    latest_reactions: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    own_reactions: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    reaction_counts: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    deleted_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_messages_owner_cid", "owner", "cid"),
    )


class ReactionRecord(Base, OwnedRowMixin):
    """Reaction; id is message_id + user id + type."""

    __tablename__ = "reactions"

    message_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(40), nullable=True)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_reactions_owner_message", "owner", "message_id"),
    )
