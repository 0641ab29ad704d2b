"""Centralized helper functions for the Vibe Coding MCP toolkit.

Id generation, timestamps and the failed-response shape shared by every tool
module live here.
"""

import datetime
import re
import secrets
import time
from typing import Any

from .exceptions import VibeCodingMCPError
from .exceptions import ValidationError
from .logger_config import ErrorCategory
from .logger_config import log_structured_error

# --- Identifiers and Timestamps ---


def generate_id(prefix: str) -> str:
    """Return ``<prefix>_<hex millisecond timestamp>_<6 hex chars>``."""
    return f"{prefix}_{int(time.time() * 1000):x}_{secrets.token_hex(3)}"


def utc_now() -> datetime.datetime:
    """Timezone-aware current UTC time."""
    return datetime.datetime.now(datetime.timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def parse_datetime(value: str) -> datetime.datetime:
    """Parse an ISO date/datetime string into an aware UTC datetime."""
    try:
        parsed = datetime.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}", field="date", value=value) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


_RELATIVE_DATE_RE = re.compile(r"^(\d+)\s+(day|week|month|year)s?\s+ago$", re.IGNORECASE)
_RELATIVE_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


def parse_date_expression(value: str, now: datetime.datetime | None = None) -> datetime.datetime:
    """Parse an ISO date or a relative expression such as ``"3 weeks ago"``."""
    match = _RELATIVE_DATE_RE.match(value.strip())
    if match:
        amount = int(match.group(1))
        days = amount * _RELATIVE_UNIT_DAYS[match.group(2).lower()]
        return (now or utc_now()) - datetime.timedelta(days=days)
    return parse_datetime(value)


def slugify(value: str) -> str:
    """Lower-case snake_case identifier built from arbitrary text."""
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")


# --- Tool Response Helpers ---


def require(params: dict[str, Any], *fields: str, action: str | None = None) -> None:
    """Raise ``ValidationError`` naming the first missing required field."""
    for field in fields:
        if params.get(field) in (None, "", []):
            suffix = f" for {action}" if action else ""
            raise ValidationError(f"{field} is required{suffix}", field=field)


def error_response(action: str | None, error: Exception) -> dict[str, Any]:
    """Build the structured failed response returned by every tool.

    Toolkit errors carry their own message; anything else is unexpected and
    gets logged before being reported.
    """
    if not isinstance(error, VibeCodingMCPError):
        log_structured_error(
            category=ErrorCategory.ERROR,
            message=f"Unexpected error during {action or 'tool'} action",
            exception=error,
            operation=action,
        )
    response: dict[str, Any] = {"success": False, "action": action, "error": str(error)}
    if isinstance(error, VibeCodingMCPError):
        response["error_code"] = error.error_code
        if error.details:
            response["details"] = error.details
    return response
