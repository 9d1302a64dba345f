"""Normalization helpers.

Centralizes defensive parsing and placeholder handling for feed values.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

# Seconds/milliseconds boundary for numeric epoch timestamps.
_MS_THRESHOLD = 1e11

# aisstream.io time_utc, e.g. "2024-05-01 12:34:56.789012345 +0000 UTC".
_FEED_TIME_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[ T](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?\s*(?P<offset>[+-]\d{2}:?\d{2}|Z)?(?:\s*UTC)?$"
)


def is_present(value: Any) -> bool:
    """Return True if a raw field carries a value worth reading."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def safe_decimal(value: Any) -> Decimal | None:
    """Parse a raw numeric field without going through binary rounding.

    Strings are parsed as written and floats through their shortest
    round-trip ``repr``, so ``"-22.9"`` and ``-22.9`` both give
    ``Decimal("-22.9")``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            text = str(value).strip()
            parsed = Decimal(text) if text else None
        except (InvalidOperation, ValueError):
            return None
        if parsed is None:
            return None
    else:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def safe_float(value: Any) -> float | None:
    parsed = safe_decimal(value)
    if parsed is None:
        return None
    result = float(parsed)
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def nonzero_float(value: Any) -> float | None:
    """Like :func:`safe_float` but zero also counts as absent."""
    result = safe_float(value)
    if not result:
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text if text else None


def safe_identifier(value: Any) -> str | None:
    """Coerce MMSI/IMO style identifiers to strings (``987654321`` -> ``"987654321"``)."""
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value) if value > 0 else None
    return safe_str(value)


def format_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    text = moment.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_iso(datetime.now(UTC))


def _parse_feed_time(text: str) -> datetime | None:
    match = _FEED_TIME_RE.match(text)
    if match is None:
        return None
    frac = (match.group("frac") or "0")[:6].ljust(6, "0")
    offset = match.group("offset") or "+00:00"
    if offset == "Z":
        offset = "+00:00"
    elif ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    try:
        return datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}.{frac}{offset}")
    except ValueError:
        return None


def to_iso_timestamp(value: Any) -> str | None:
    """Best-effort conversion of a feed timestamp to ISO-8601.

    - datetimes are formatted directly
    - numeric epochs (seconds or milliseconds) are converted to UTC
    - feed-formatted strings are reparsed; other strings are kept verbatim
    """
    if not is_present(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, (int, float)):
        try:
            ts = float(value)
        except OverflowError:
            return None
        if not math.isfinite(ts) or ts <= 0:
            return None
        if ts > _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return format_iso(datetime.fromtimestamp(ts, tz=UTC))
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    parsed = _parse_feed_time(text)
    if parsed is not None:
        return format_iso(parsed)
    return text


def parse_iso_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string produced by :func:`to_iso_timestamp`."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return _parse_feed_time(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
