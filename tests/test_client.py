from __future__ import annotations

import pytest

from _feed_fakes import FakeTransport, close_frame, position_message, text_frame
from portais.cache import PositionCache, position_key, track_key, zone_key
from portais.client import AisClient
from portais.config import AisStreamConfig
from portais.exceptions import AisConfigError, AisTransportError, AisUnsupportedIdentifierError
from portais.models.position import IdentifierType
from portais.models.requests import ZoneBounds

_ZONE = {"minlat": 51.8, "maxlat": 52.1, "minlon": 3.9, "maxlon": 4.5}


def _client(transport: FakeTransport, *, api_key: str | None = "test-key", cache: PositionCache | None = None) -> AisClient:
    return AisClient(AisStreamConfig(api_key=api_key, cache_check_period=0), transport=transport, cache=cache)


@pytest.mark.asyncio
async def test_missing_credential_rejects_without_connecting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AISSTREAM_API_KEY", raising=False)
    transport = FakeTransport()

    async with AisClient(AisStreamConfig.from_env(), transport=transport) as client:
        with pytest.raises(AisConfigError):
            await client.fetch_latest_position_by_mmsi("123456789")

    assert transport.connect_attempts == 0


@pytest.mark.asyncio
async def test_latest_position_returns_matching_vessel() -> None:
    transport = FakeTransport(
        frames=[
            (0.01, text_frame(position_message(111111111, 1.0, 2.0))),
            (0.02, text_frame(position_message(123456789, 51.9, 4.1))),
            (0.03, close_frame()),
        ]
    )
    async with _client(transport) as client:
        position = await client.fetch_latest_position_by_mmsi(123456789)

    assert position is not None
    assert position.vessel_id == "123456789"
    subscription = transport.connections[0].sent[0]
    assert subscription["BoundingBoxes"] == [[[-90.0, -180.0], [90.0, 180.0]]]
    assert subscription["FiltersShipMMSI"] == ["123456789"]


@pytest.mark.asyncio
async def test_latest_position_not_found_returns_none() -> None:
    transport = FakeTransport(frames=[(0.01, close_frame())])
    async with _client(transport) as client:
        assert await client.fetch_latest_position_by_mmsi("123456789", timeout=0.5) is None


@pytest.mark.asyncio
async def test_transport_error_propagates_to_caller() -> None:
    transport = FakeTransport(connect_error=AisTransportError("refused"))
    async with _client(transport) as client:
        with pytest.raises(AisTransportError):
            await client.fetch_latest_position_by_mmsi("123456789")


@pytest.mark.asyncio
async def test_zone_fetch_subscribes_to_zone_without_vessel_filter() -> None:
    transport = FakeTransport(
        frames=[
            (0.01, text_frame(position_message(111111111, 51.9, 4.0))),
            (0.02, text_frame(position_message(222222222, 52.0, 4.2))),
            (0.03, close_frame()),
        ]
    )
    async with _client(transport) as client:
        vessels = await client.fetch_vessels_in_zone(_ZONE)

    assert {record.vessel_id for record in vessels} == {"111111111", "222222222"}
    subscription = transport.connections[0].sent[0]
    assert subscription["BoundingBoxes"] == [[[51.8, 3.9], [52.1, 4.5]]]
    assert "FiltersShipMMSI" not in subscription


@pytest.mark.asyncio
async def test_track_keeps_only_requested_vessel() -> None:
    transport = FakeTransport(
        frames=[
            (0.01, text_frame(position_message(123456789, 1.0, 2.0, time_utc="2026-01-01 12:00:05 +0000 UTC"))),
            (0.02, text_frame(position_message(999999999, 1.0, 2.0))),
            (0.03, close_frame()),
        ]
    )
    async with _client(transport) as client:
        track = await client.fetch_track_by_mmsi("123456789")

    assert [record.vessel_id for record in track] == ["123456789"]
    assert track[0].timestamp == "2026-01-01T12:00:05.000Z"


@pytest.mark.asyncio
async def test_cached_position_skips_second_connection() -> None:
    cache = PositionCache(check_period=0)
    transport = FakeTransport(frames=[(0.01, text_frame(position_message(123456789, 51.9, 4.1)))])
    async with _client(transport, cache=cache) as client:
        first = await client.get_latest_position("123456789", timeout=0.2)
        second = await client.get_latest_position("123456789", timeout=0.2)

    assert first is not None
    assert second is first
    assert transport.connect_attempts == 1
    assert position_key("123456789", "mmsi") in cache


@pytest.mark.asyncio
async def test_zone_results_cached_under_rounded_key() -> None:
    cache = PositionCache(check_period=0)
    transport = FakeTransport(frames=[(0.01, text_frame(position_message(111111111, 51.9, 4.0))), (0.02, close_frame())])
    async with _client(transport, cache=cache) as client:
        await client.get_vessels_in_zone(_ZONE)
        nearby = dict(_ZONE, minlat=51.80001)
        again = await client.get_vessels_in_zone(nearby)

    assert [record.vessel_id for record in again] == ["111111111"]
    assert transport.connect_attempts == 1
    assert zone_key(ZoneBounds(**_ZONE)) in cache


@pytest.mark.asyncio
async def test_empty_results_are_not_cached() -> None:
    cache = PositionCache(check_period=0)
    transport = FakeTransport(frames=[(0.01, close_frame())])
    async with _client(transport, cache=cache) as client:
        assert await client.get_track("123456789", hours=6) == []

    assert track_key("123456789", "mmsi", 6) not in cache
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_imo_lookups_are_rejected_before_connecting() -> None:
    transport = FakeTransport()
    async with _client(transport) as client:
        with pytest.raises(AisUnsupportedIdentifierError) as exc_info:
            await client.get_latest_position("9321483", id_type="imo")

    assert exc_info.value.supported == ("mmsi",)
    assert transport.connect_attempts == 0


def test_provider_info() -> None:
    info = _client(FakeTransport()).provider_info()
    assert info.provider == "aisstream"
    assert info.supported_identifiers == (IdentifierType.MMSI,)


@pytest.mark.asyncio
async def test_padded_identifier_shares_cache_key() -> None:
    cache = PositionCache(check_period=0)
    transport = FakeTransport(frames=[(0.01, text_frame(position_message(123456789, 51.9, 4.1)))])
    async with _client(transport, cache=cache) as client:
        first = await client.get_latest_position(" 123456789 ", timeout=0.2)
        second = await client.get_latest_position("123456789", timeout=0.2)

    assert first is not None
    assert second is first
    assert transport.connect_attempts == 1
    assert position_key("123456789", "mmsi") in cache
