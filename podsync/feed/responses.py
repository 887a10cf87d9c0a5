"""Helpers for reading feed responses."""

import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx


async def parse_error_response(response: httpx.Response) -> str:
    """Get a human-readable message from a non-success response.

    Uses the "message", "detail" or "error" field of a JSON body, then
    the body text, then the status line.
    """
    body = await response.aread()
    text = body.decode(response.encoding or "utf-8", errors="replace").strip()

    if text:
        try:
            data = json.loads(text)
        except ValueError:
            return text
        if isinstance(data, dict):
            for key in ("message", "detail", "error"):
                if isinstance(data.get(key), str) and data[key]:
                    return data[key]
        return text

    return f"{response.status_code} {response.reason_phrase}".strip()


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP date (RFC 1123) or ISO-8601 timestamp.

    Returns:
        Timezone-aware datetime, or None if missing or unparseable.
    """
    if not value:
        return None
    value = value.strip()

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        iso_value = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(iso_value)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds, e.g. 2024-01-01T00:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_max_age(cache_control: str | None) -> int | None:
    """Get the positive max-age directive from a Cache-Control header."""
    if not cache_control:
        return None

    for part in cache_control.split(","):
        part = part.strip()
        if not part.startswith("max-age="):
            continue
        try:
            seconds = int(part.split("=", 1)[1])
        except ValueError:
            return None
        return seconds if seconds > 0 else None

    return None


def has_token(header: str | None, token: str) -> bool:
    """Check whether a comma-separated header lists a token."""
    if not header:
        return False
    return any(
        part.strip().split("=", 1)[0].strip().lower() == token
        for part in header.split(",")
    )
