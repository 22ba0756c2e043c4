"""
Reaction <-> row mapping.
"""
from chat_cache.core.keys import reaction_key
from chat_cache.mappers.storables import Storables
from chat_cache.mappers.user import convert_user_to_storable
from chat_cache.schemas.message import Reaction
from chat_cache.schemas.user import User
from chat_cache.storage.base import Row
from chat_cache.utils.datetime_utils import parse_iso_utc, to_iso_utc


def convert_reaction_to_storable(reaction: Reaction, storables: Storables) -> str:
    """Store the reaction and its user; return the derived reaction id."""
    storables[reaction_key(reaction.id)] = {
        "id": reaction.id,
        "message_id": reaction.message_id,
        "user": convert_user_to_storable(reaction.user, storables),
        "type": reaction.type,
        "score": reaction.score,
        "created_at": to_iso_utc(reaction.created_at),
        "updated_at": to_iso_utc(reaction.updated_at),
        "extra_data": reaction.extra_data,
    }
    return reaction.id


def reaction_from_row(row: Row, user: User) -> Reaction:
    return Reaction(
        message_id=row["message_id"],
        user=user,
        type=row["type"],
        score=row.get("score") or 0,
        created_at=parse_iso_utc(row.get("created_at")),
        updated_at=parse_iso_utc(row.get("updated_at")),
        extra_data=row.get("extra_data"),
    )
