"""
Base schema model for API responses.

Provides camelCase field aliases for the dashboard frontend and consistent
datetime serialization with a UTC 'Z' suffix.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer


def to_camel(string: str) -> str:
    """
    Convert snake_case to camelCase.

    Example:
        >>> to_camel("not_viewed_complaints")
        'notViewedComplaints'
    """
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Serialize a datetime to ISO 8601 with a 'Z' suffix.

    Naive values are assumed to be UTC (that is how they are stored);
    aware values are converted to UTC first.
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)

    return dt.isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP and channel payload schemas.

    - camelCase aliases, snake_case accepted on input
    - from_attributes=True so table rows validate directly
    - datetimes rendered with the 'Z' suffix
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    @classmethod
    def serialize_any_datetime(cls, value: Any, handler: Any) -> Any:
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)
