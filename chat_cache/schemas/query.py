"""
Schemas for channel-list queries.
"""
import enum


class QueryMode(str, enum.Enum):
    """How a query result is written into the query cache."""
    RELOAD = "reload"    # replace the stored id list
    APPEND = "append"    # concatenate a further page
    REFRESH = "refresh"  # replace with the refreshed visible window
