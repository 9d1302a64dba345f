"""Process-local TTL cache for feed results.

Entries expire lazily (an expired entry read through :meth:`PositionCache.get`
is removed and reported as a miss) and through a periodic background sweep
that bounds memory held by entries nobody reads again.

TTL tiers (seconds), see :class:`CacheTTL`:

- positions: 60 (positions change frequently)
- zone queries: 300 (expensive, many vessels)
- tracks: 900 (history changes slowly)
- port/reference data: 3600 (rarely changes)
- fleet status: 30

The cache is single-threaded and not shared between processes. Construct
one instance at startup and pass it to every caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import sys
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from pydantic import BaseModel

from portais._constants import DEFAULT_CACHE_CHECK_PERIOD, DEFAULT_CACHE_TTL, DEFAULT_TRACK_HOURS, ZONE_KEY_PRECISION
from portais.models.position import IdentifierType
from portais.models.requests import ZoneBounds

_logger = logging.getLogger(__name__)


class CacheTTL(IntEnum):
    POSITION = 60
    ZONE = 300
    TRACK = 900
    PORT = 3600
    FLEET_STATUS = 30


# ------------------------------------------------------------------
# Key builders. Callers must build keys through these to get hits.
# ------------------------------------------------------------------


def position_key(identifier: str | int, id_type: IdentifierType | str = IdentifierType.MMSI) -> str:
    """``position:<type>:<identifier>``"""
    return f"position:{IdentifierType(id_type).value}:{identifier}"


def zone_key(bounds: ZoneBounds | Mapping[str, Any]) -> str:
    """``zone:<minlat>:<maxlat>:<minlon>:<maxlon>`` with 4-decimal bounds.

    Boxes differing only below ~11 m share one entry.
    """
    if isinstance(bounds, ZoneBounds):
        values = (bounds.minlat, bounds.maxlat, bounds.minlon, bounds.maxlon)
    else:
        values = (bounds["minlat"], bounds["maxlat"], bounds["minlon"], bounds["maxlon"])
    return "zone:" + ":".join(f"{float(value):.{ZONE_KEY_PRECISION}f}" for value in values)


def track_key(
    identifier: str | int,
    id_type: IdentifierType | str = IdentifierType.MMSI,
    hours: int = DEFAULT_TRACK_HOURS,
) -> str:
    """``track:<type>:<identifier>:<hours>h``"""
    return f"track:{IdentifierType(id_type).value}:{identifier}:{hours}h"


def _approx_size(value: Any, _depth: int = 0) -> int:
    """Rough in-memory footprint, in the spirit of a UTF-16 string count."""
    if _depth > 20 or value is None:
        return 0
    if isinstance(value, str):
        return len(value) * 2
    if isinstance(value, bool):
        return 4
    if isinstance(value, (int, float)):
        return 8
    if isinstance(value, BaseModel):
        return _approx_size(value.model_dump(), _depth + 1)
    if isinstance(value, Mapping):
        return sum(_approx_size(k, _depth + 1) + _approx_size(v, _depth + 1) for k, v in value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return sum(_approx_size(item, _depth + 1) for item in value)
    return sys.getsizeof(value)


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float
    """Absolute expiry on the cache clock; ``inf`` never expires."""

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    key_count: int
    hits: int
    misses: int
    approx_key_size: int
    approx_value_size: int


class PositionCache:
    """In-memory TTL key-value store.

    Parameters
    ----------
    default_ttl : float
        TTL in seconds used by :meth:`set` when none is given.
    check_period : float
        Interval in seconds of the background sweep.
    clock : callable
        Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        *,
        default_ttl: float = DEFAULT_CACHE_TTL,
        check_period: float = DEFAULT_CACHE_CHECK_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._check_period = check_period
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key) if isinstance(key, str) else None
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on a miss or expired entry."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._entries[key]
            entry = None
        if entry is None:
            self._misses += 1
            _logger.debug("Cache MISS: %s", key)
            return None
        self._hits += 1
        _logger.debug("Cache HIT: %s", key)
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store ``value`` for ``ttl`` seconds. A ttl of 0 never expires."""
        seconds = self._default_ttl if ttl is None else float(ttl)
        if seconds < 0 or math.isnan(seconds):
            raise ValueError(f"ttl must be >= 0, got {ttl!r}")
        expires_at = math.inf if seconds == 0 else self._clock() + seconds
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        _logger.debug("Cache SET: %s (TTL: %ss)", key, ttl if ttl is not None else self._default_ttl)
        return True

    def delete(self, key: str) -> int:
        """Remove ``key``. Returns the number of removed entries."""
        if self._entries.pop(key, None) is None:
            return 0
        _logger.debug("Cache DELETE: %s", key)
        return 1

    def clear(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        _logger.debug("Cache CLEARED: all entries removed")

    def stats(self) -> CacheStats:
        return CacheStats(
            key_count=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            approx_key_size=sum(len(key) for key in self._entries),
            approx_value_size=sum(_approx_size(entry.value) for entry in self._entries.values()),
        )

    def sweep(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            _logger.debug("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if self.sweeper_running or self._check_period <= 0:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop_sweeper(self) -> None:
        task = self._sweeper
        self._sweeper = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._check_period)
            self.sweep()
