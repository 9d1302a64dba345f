"""High-level async client for the AIS live-position feed."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import aiohttp

from portais._constants import (
    DEFAULT_TRACK_HOURS,
    GLOBAL_BOUNDING_BOX,
    LATEST_POSITION_MAX_RECORDS,
    LATEST_POSITION_TIMEOUT,
    PROVIDER_NAME,
    TRACK_MAX_RECORDS,
    TRACK_TIMEOUT,
    ZONE_MAX_RECORDS,
    ZONE_TIMEOUT,
)
from portais._transport import FeedTransport
from portais.cache import CacheTTL, PositionCache, position_key, track_key, zone_key
from portais.config import AisStreamConfig
from portais.exceptions import AisError, AisUnsupportedIdentifierError
from portais.ingestion.normalize import parse_iso_timestamp
from portais.models.position import IdentifierType, PositionRecord
from portais.models.requests import StreamRequest, ZoneBounds
from portais.session import StreamSession, require_api_key
from portais.state.policy import OverwritePolicy

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInfo:
    """What the configured feed can look vessels up by."""

    provider: str
    supported_identifiers: tuple[IdentifierType, ...]


def _coerce_bounds(bounds: ZoneBounds | Mapping[str, Any]) -> ZoneBounds:
    if isinstance(bounds, ZoneBounds):
        return bounds
    return ZoneBounds(
        minlat=float(bounds["minlat"]),
        maxlat=float(bounds["maxlat"]),
        minlon=float(bounds["minlon"]),
        maxlon=float(bounds["maxlon"]),
    )


def _timestamp_sort_key(record: PositionRecord) -> float:
    parsed = parse_iso_timestamp(record.timestamp)
    return parsed.timestamp() if parsed is not None else float("-inf")


class AisClient:
    """Async client for live vessel positions.

    Usage::

        async with AisClient(AisStreamConfig.from_env()) as client:
            record = await client.get_latest_position("244660000")

    The ``fetch_*`` methods always open a stream session. The ``get_*``
    methods probe the injected :class:`PositionCache` first and store
    non-empty results under the tier TTLs.
    """

    _SUPPORTED_IDENTIFIERS: tuple[IdentifierType, ...] = (IdentifierType.MMSI,)

    def __init__(
        self,
        config: AisStreamConfig,
        *,
        cache: PositionCache | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: FeedTransport | None = None,
        policy: OverwritePolicy = OverwritePolicy.LAST_ARRIVAL,
    ) -> None:
        self._config = config
        self._cache = cache if cache is not None else PositionCache(check_period=config.cache_check_period)
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._policy = policy
        self._stream: StreamSession | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AisClient:
        if self._http_session is None and self._transport is None:
            self._http_session = aiohttp.ClientSession()
        self._cache.start_sweeper()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._cache.stop_sweeper()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._stream = None

    @property
    def cache(self) -> PositionCache:
        return self._cache

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(provider=PROVIDER_NAME, supported_identifiers=self._SUPPORTED_IDENTIFIERS)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _session(self) -> StreamSession:
        if self._stream is None:
            self._stream = StreamSession(
                self._config,
                transport=self._transport,
                http_session=self._http_session,
                policy=self._policy,
            )
        return self._stream

    def _require_identifier_type(self, id_type: IdentifierType | str) -> IdentifierType:
        resolved = IdentifierType(id_type)
        if resolved not in self._SUPPORTED_IDENTIFIERS:
            raise AisUnsupportedIdentifierError(
                resolved.value,
                supported=tuple(item.value for item in self._SUPPORTED_IDENTIFIERS),
            )
        return resolved

    # ------------------------------------------------------------------
    # Live fetches
    # ------------------------------------------------------------------

    async def fetch_vessels_in_zone(
        self,
        bounds: ZoneBounds | Mapping[str, Any],
        *,
        timeout: float = ZONE_TIMEOUT,
        max_records: int = ZONE_MAX_RECORDS,
    ) -> list[PositionRecord]:
        """Collect vessels currently reporting inside ``bounds``."""
        zone = _coerce_bounds(bounds)
        request = StreamRequest(
            bounding_boxes=[zone.as_bounding_box()],
            timeout=timeout,
            max_records=max_records,
        )
        return await self._session().open(request)

    async def fetch_latest_position_by_mmsi(
        self,
        mmsi: str | int,
        *,
        timeout: float = LATEST_POSITION_TIMEOUT,
    ) -> PositionRecord | None:
        """Listen worldwide for one vessel and return its latest report, if any."""
        vessel_id = str(mmsi).strip()
        try:
            require_api_key(self._config)
        except AisError:
            _logger.error("Cannot fetch position for MMSI %s: AISSTREAM_API_KEY is not configured", vessel_id)
            raise

        _logger.debug("Fetching position for MMSI %s timeout=%ss", vessel_id, timeout)
        request = StreamRequest(
            bounding_boxes=[GLOBAL_BOUNDING_BOX],
            vessel_ids=[vessel_id],
            timeout=timeout,
            max_records=LATEST_POSITION_MAX_RECORDS,
        )
        try:
            results = await self._session().open(request)
        except AisError as exc:
            _logger.error(
                "Error fetching position for MMSI %s: %s (%s)",
                vessel_id,
                exc,
                type(exc).__name__,
            )
            raise

        position = next((record for record in results if record.vessel_id == vessel_id), None)
        if position is not None:
            _logger.info(
                "Fetched position for MMSI %s lat=%s lon=%s timestamp=%s",
                vessel_id,
                position.lat,
                position.lon,
                position.timestamp,
            )
        else:
            _logger.warning(
                "No position data found for MMSI %s results=%d received=%s",
                vessel_id,
                len(results),
                [record.vessel_id for record in results],
            )
        return position

    async def fetch_track_by_mmsi(
        self,
        mmsi: str | int,
        *,
        timeout: float = TRACK_TIMEOUT,
        max_records: int = TRACK_MAX_RECORDS,
    ) -> list[PositionRecord]:
        """Approximate a short track from one live burst, oldest first.

        The feed is live only; this is not a persisted history.
        """
        vessel_id = str(mmsi).strip()
        request = StreamRequest(
            bounding_boxes=[GLOBAL_BOUNDING_BOX],
            vessel_ids=[vessel_id],
            timeout=timeout,
            max_records=max_records,
        )
        results = await self._session().open(request)
        matching = [record for record in results if record.vessel_id == vessel_id]
        return sorted(matching, key=_timestamp_sort_key)

    # ------------------------------------------------------------------
    # Cached lookups
    # ------------------------------------------------------------------

    async def get_latest_position(
        self,
        identifier: str | int,
        *,
        id_type: IdentifierType | str = IdentifierType.MMSI,
        timeout: float = LATEST_POSITION_TIMEOUT,
    ) -> PositionRecord | None:
        resolved = self._require_identifier_type(id_type)
        vessel_id = str(identifier).strip()
        key = position_key(vessel_id, resolved)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        position = await self.fetch_latest_position_by_mmsi(vessel_id, timeout=timeout)
        if position is not None:
            self._cache.set(key, position, CacheTTL.POSITION)
        return position

    async def get_vessels_in_zone(
        self,
        bounds: ZoneBounds | Mapping[str, Any],
        *,
        timeout: float = ZONE_TIMEOUT,
        max_records: int = ZONE_MAX_RECORDS,
    ) -> list[PositionRecord]:
        zone = _coerce_bounds(bounds)
        key = zone_key(zone)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        vessels = await self.fetch_vessels_in_zone(zone, timeout=timeout, max_records=max_records)
        if vessels:
            self._cache.set(key, vessels, CacheTTL.ZONE)
        return vessels

    async def get_track(
        self,
        identifier: str | int,
        *,
        id_type: IdentifierType | str = IdentifierType.MMSI,
        hours: int = DEFAULT_TRACK_HOURS,
        timeout: float = TRACK_TIMEOUT,
        max_records: int = TRACK_MAX_RECORDS,
    ) -> list[PositionRecord]:
        resolved = self._require_identifier_type(id_type)
        vessel_id = str(identifier).strip()
        key = track_key(vessel_id, resolved, hours)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        track = await self.fetch_track_by_mmsi(vessel_id, timeout=timeout, max_records=max_records)
        if track:
            self._cache.set(key, track, CacheTTL.TRACK)
        return track
