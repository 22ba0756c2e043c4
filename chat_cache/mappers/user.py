"""
User <-> row mapping.
"""
from chat_cache.core.keys import user_key
from chat_cache.mappers.encoding import bool_to_text, text_to_bool
from chat_cache.mappers.storables import Storables
from chat_cache.schemas.user import User
from chat_cache.storage.base import Row
from chat_cache.utils.datetime_utils import parse_iso_utc, to_iso_utc

# Columns a user row carries besides its id
USER_COLUMNS = ("role", "online", "banned", "last_active", "created_at", "updated_at", "extra_data")


def convert_user_to_storable(user: User, storables: Storables) -> str:
    """
    Put the user row into ``storables`` and return the reference id.

    Only fields the caller actually set are written, so a partial user (a
    placeholder, or one embedded with just an id) never resets what a fuller
    copy of the same user already put in the batch. The store fills the
    remaining columns from the stored row before writing.
    """
    row = {
        "id": user.id,
        "role": user.role,
        "online": bool_to_text(user.online),
        "banned": int(user.banned),
        "last_active": to_iso_utc(user.last_active),
        "created_at": to_iso_utc(user.created_at),
        "updated_at": to_iso_utc(user.updated_at),
        "extra_data": user.extra_data,
    }
    row = {column: value for column, value in row.items() if column == "id" or column in user.model_fields_set}

    key = user_key(user.id)
    storables[key] = {**storables.get(key, {}), **row}
    return user.id


def is_partial_user_row(row: Row) -> bool:
    return any(column not in row for column in USER_COLUMNS)


def user_from_row(row: Row) -> User:
    return User(
        id=row["id"],
        role=row.get("role"),
        online=text_to_bool(row.get("online")),
        banned=bool(row.get("banned")),
        last_active=parse_iso_utc(row.get("last_active")),
        created_at=parse_iso_utc(row.get("created_at")),
        updated_at=parse_iso_utc(row.get("updated_at")),
        extra_data=row.get("extra_data"),
    )
