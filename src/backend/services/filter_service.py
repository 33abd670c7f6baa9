"""
Filter normalization for complaint list queries.

Turns the JSON-encoded ``filters`` query parameter into a validated
ComplaintFilter. Pure: no store access, so every rejection happens before
any query is issued.
"""

import json
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from api.schemas.complaint import ComplaintFilter
from core.config import settings
from core.exceptions import ValidationError
from db.models import COMPLAINT_STATUSES, READ_STATUSES, utc_now

logger = logging.getLogger(__name__)

SCHOLAR_NUMBER_PATTERN = re.compile(r"^\d{10}$")
EPOCH = datetime(1970, 1, 1)

_datetime_adapter = TypeAdapter(datetime)
_date_adapter = TypeAdapter(date)

SCOPE_KEY_ALIASES = ("scopeKey", "hostelNumber", "department")


def parse_date(value: Any) -> datetime:
    """
    Parse an ISO-8601 date or datetime into naive UTC.

    Raises:
        ValidationError: "Invalid date format"
    """
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            day = _date_adapter.validate_python(value.strip())
            return datetime(day.year, day.month, day.day)
        except PydanticValidationError:
            raise ValidationError("Invalid date format")

    try:
        parsed = _datetime_adapter.validate_python(value)
    except PydanticValidationError:
        raise ValidationError("Invalid date format")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _optional_str(raw: dict, key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_filters(raw: Optional[str], now: Optional[datetime] = None) -> ComplaintFilter:
    """
    Normalize the client filter blob.

    Args:
        raw: JSON object text, or None/empty for no filters
        now: Upper bound used when endDate is absent (evaluated per call)

    Raises:
        ValidationError: On malformed JSON, dates, ranges or enum values
    """
    if raw is None or not raw.strip():
        data: dict = {}
    else:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            raise ValidationError("Invalid filters")
        if not isinstance(data, dict):
            raise ValidationError("Invalid filters")

    start = parse_date(data["startDate"]) if data.get("startDate") else EPOCH
    end = parse_date(data["endDate"]) if data.get("endDate") else (now or utc_now())
    if start > end:
        raise ValidationError("startDate must be before endDate")

    status = _optional_str(data, "status")
    if status is not None and status not in COMPLAINT_STATUSES:
        raise ValidationError(f"Invalid status filter: {status}")

    read_status = _optional_str(data, "readStatus")
    if read_status is not None and read_status not in READ_STATUSES:
        raise ValidationError(f"Invalid readStatus filter: {read_status}")

    scholar_numbers = data.get("scholarNumbers") or []
    if not isinstance(scholar_numbers, list):
        scholar_numbers = [scholar_numbers]
    valid_scholars = [
        str(s) for s in scholar_numbers if SCHOLAR_NUMBER_PATTERN.match(str(s))
    ]
    if len(valid_scholars) != len(scholar_numbers):
        logger.debug(
            f"Dropped {len(scholar_numbers) - len(valid_scholars)} malformed scholar numbers"
        )

    scope_key = next(
        (v for v in (_optional_str(data, k) for k in SCOPE_KEY_ALIASES) if v),
        None,
    )

    return ComplaintFilter(
        start_date=start,
        end_date=end,
        complaint_type=_optional_str(data, "complaintType"),
        status=status,
        read_status=read_status,
        scope_key=scope_key,
        scholar_numbers=valid_scholars,
    )


def normalize_limit(raw: Any) -> int:
    """
    Page size: missing, invalid or non-positive values fall back to the
    default; anything above the maximum is clamped.
    """
    default = settings.pagination.default_page_size
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return default
    if limit <= 0:
        return default
    return min(limit, settings.pagination.max_page_size)
