"""Overwrite policy for deduplicating reports within one burst.

This module intentionally contains *no* payload parsing. Records reaching
it are already normalized.
"""

from __future__ import annotations

from enum import StrEnum

from portais.ingestion.normalize import parse_iso_timestamp
from portais.models.position import PositionRecord


class OverwritePolicy(StrEnum):
    LAST_ARRIVAL = "last_arrival"
    """Every insert replaces the stored record (feed arrival order wins)."""
    NEWEST_TIMESTAMP = "newest_timestamp"
    """Keep the stored record when the incoming one is strictly older."""


def should_replace(
    cached: PositionRecord | None,
    incoming: PositionRecord,
    policy: OverwritePolicy,
) -> bool:
    """Decide whether ``incoming`` replaces ``cached`` for the same vessel.

    Policy:
    - No cached record: always accept.
    - LAST_ARRIVAL: always accept.
    - NEWEST_TIMESTAMP: reject only when both timestamps parse and the
      incoming one is older. Unparseable timestamps fall back to arrival order.
    """
    if cached is None or policy == OverwritePolicy.LAST_ARRIVAL:
        return True
    cached_ts = parse_iso_timestamp(cached.timestamp)
    incoming_ts = parse_iso_timestamp(incoming.timestamp)
    if cached_ts is None or incoming_ts is None:
        return True
    return incoming_ts >= cached_ts
