from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from _feed_fakes import position_message
from portais.ingestion.normalize import parse_iso_timestamp, safe_float, to_iso_timestamp
from portais.ingestion.positions import FIELD_PRECEDENCE, normalize

_LAT_ALIASES = ("Latitude", "latitude")
_LON_ALIASES = ("Longitude", "longitude")


def _without_coordinates() -> list[dict[str, Any]]:
    return [
        {},
        {"MetaData": {"MMSI": 123456789, "ShipName": "NO FIX"}},
        {"MetaData": {"MMSI": 123456789}, "Message": {"PositionReport": {"Cog": 10.0, "Sog": 3.0}}},
        {"PositionReport": {"MMSI": 123456789, "TrueHeading": 90}},
        {"MMSI": 123456789, "Message": {}},
    ]


@pytest.mark.parametrize("raw", _without_coordinates())
def test_message_without_coordinates_is_absent(raw: dict[str, Any]) -> None:
    assert normalize(raw) is None


@pytest.mark.parametrize("lat_key", _LAT_ALIASES)
@pytest.mark.parametrize("block", ["MetaData", "body"])
def test_latitude_without_longitude_is_absent(lat_key: str, block: str) -> None:
    if block == "MetaData":
        raw = {"MetaData": {"MMSI": 1, lat_key: 10.5}}
    else:
        raw = {"MetaData": {"MMSI": 1}, "Message": {"PositionReport": {lat_key: 10.5}}}
    assert normalize(raw) is None


@pytest.mark.parametrize("lon_key", _LON_ALIASES)
def test_longitude_without_latitude_is_absent(lon_key: str) -> None:
    assert normalize({"MetaData": {"MMSI": 1, lon_key: 10.5}}) is None


@pytest.mark.parametrize(
    ("meta", "body", "expected_lat"),
    [
        ({"Latitude": 1.1, "latitude": 2.2}, {"Latitude": 3.3, "latitude": 4.4}, 1.1),
        ({"latitude": 2.2}, {"Latitude": 3.3, "latitude": 4.4}, 2.2),
        ({}, {"Latitude": 3.3, "latitude": 4.4}, 3.3),
        ({}, {"latitude": 4.4}, 4.4),
    ],
)
def test_latitude_follows_precedence_chain(meta: dict[str, Any], body: dict[str, Any], expected_lat: float) -> None:
    raw = {
        "MetaData": {"MMSI": 111111111, "Longitude": 5.0, **meta},
        "Message": {"PositionReport": body},
    }
    record = normalize(raw)
    assert record is not None
    assert record.lat == expected_lat


def test_longitude_follows_precedence_chain() -> None:
    raw = {
        "MetaData": {"MMSI": 111111111, "Latitude": 1.0, "longitude": 7.7},
        "Message": {"PositionReport": {"Longitude": 8.8}},
    }
    record = normalize(raw)
    assert record is not None
    assert record.lon == 7.7


def test_precedence_table_is_declared_in_order() -> None:
    assert [repr(accessor) for accessor in FIELD_PRECEDENCE["lat"]] == [
        "meta.Latitude",
        "meta.latitude",
        "body.Latitude",
        "body.latitude",
    ]
    assert [repr(accessor) for accessor in FIELD_PRECEDENCE["vessel_id"]][:6] == [
        "meta.MMSI",
        "meta.mmsi",
        "body.MMSI",
        "body.mmsi",
        "top.MMSI",
        "top.mmsi",
    ]


@pytest.mark.parametrize("text", ["-22.9", "-43.2", "51.923456789", "4.1234567", "179.99999999"])
def test_coordinates_keep_their_decimal_value(text: str) -> None:
    record = normalize({"MetaData": {"MMSI": 1, "Latitude": "10.0", "Longitude": text}})
    assert record is not None
    assert repr(record.lon) == text


def test_string_coordinates_round_trip_exactly() -> None:
    record = normalize({"MetaData": {"MMSI": "987654321", "Latitude": "-22.9", "Longitude": "-43.2"}})
    assert record is not None
    assert repr(record.lat) == "-22.9"
    assert repr(record.lon) == "-43.2"


@pytest.mark.parametrize("bad", ["abc", "", "NaN", "Infinity", True, None, [1.0], {"v": 1}])
def test_non_numeric_latitude_is_absent(bad: Any) -> None:
    assert normalize({"MetaData": {"MMSI": 1, "Latitude": bad, "Longitude": 4.0}}) is None


def test_out_of_range_coordinates_are_absent() -> None:
    assert normalize({"MetaData": {"MMSI": 1, "Latitude": 91.0, "Longitude": 4.0}}) is None
    assert normalize({"MetaData": {"MMSI": 1, "Latitude": 10.0, "Longitude": -180.5}}) is None


@pytest.mark.parametrize("raw", [None, "text", 42, ["MetaData"], b"{}"])
def test_non_mapping_input_is_absent(raw: Any) -> None:
    assert normalize(raw) is None


def test_feed_shaped_message_maps_every_field() -> None:
    raw = position_message(
        244660000,
        51.9,
        4.1,
        ship_name="  MAERSK TEST  ",
        time_utc="2024-05-01 12:34:56.789012345 +0000 UTC",
        NavigationalStatus=5,
    )
    raw["MetaData"]["IMO"] = 9321483
    raw["MetaData"]["CallSign"] = "PBXY"

    record = normalize(raw)

    assert record is not None
    assert record.vessel_id == "244660000"
    assert record.imo == "9321483"
    assert record.name == "MAERSK TEST"
    assert record.call_sign == "PBXY"
    assert record.cog == 182.5
    assert record.sog == 11.2
    assert record.heading == 181.0
    assert record.nav_status == "Moored"
    assert record.timestamp == "2024-05-01T12:34:56.789Z"


def test_vessel_id_falls_back_to_top_level_mmsi() -> None:
    record = normalize({"mmsi": 123456789, "PositionReport": {"latitude": 1.0, "longitude": 2.0}})
    assert record is not None
    assert record.vessel_id == "123456789"


def test_record_without_vessel_id_keeps_position() -> None:
    record = normalize({"MetaData": {"Latitude": 1.0, "Longitude": 2.0}})
    assert record is not None
    assert record.vessel_id is None


def test_zero_course_and_speed_are_absent() -> None:
    record = normalize(
        {"MetaData": {"MMSI": 1, "Latitude": 1.0, "Longitude": 2.0}, "Message": {"PositionReport": {"Cog": 0, "Sog": "0"}}}
    )
    assert record is not None
    assert record.cog is None
    assert record.sog is None


def test_course_uses_historical_spellings() -> None:
    record = normalize({"MetaData": {"MMSI": 1, "Latitude": 1.0, "Longitude": 2.0}, "Message": {"course": 1, "cog": 45}})
    assert record is not None
    assert record.cog == 45.0


def test_missing_timestamp_defaults_to_collection_time() -> None:
    before = datetime.now(UTC) - timedelta(seconds=1)
    record = normalize({"MetaData": {"MMSI": 1, "Latitude": 1.0, "Longitude": 2.0}})
    after = datetime.now(UTC) + timedelta(seconds=1)

    assert record is not None
    assert record.timestamp.endswith("Z")
    parsed = parse_iso_timestamp(record.timestamp)
    assert parsed is not None
    assert before <= parsed <= after


def test_epoch_timestamps_are_converted() -> None:
    assert to_iso_timestamp(1_700_000_000) == "2023-11-14T22:13:20.000Z"
    assert to_iso_timestamp(1_700_000_000_000) == "2023-11-14T22:13:20.000Z"


def test_unknown_timestamp_strings_are_kept() -> None:
    assert to_iso_timestamp("yesterday noon") == "yesterday noon"


def test_safe_float_rejects_booleans_and_blank() -> None:
    assert safe_float(True) is None
    assert safe_float("  ") is None
    assert safe_float("12.5") == 12.5


def test_normalize_does_not_mutate_input() -> None:
    raw = position_message(1, 1.0, 2.0)
    snapshot = repr(raw)
    normalize(raw)
    assert repr(raw) == snapshot


def test_overflowing_epoch_timestamp_falls_back_to_collection_time() -> None:
    record = normalize({"MetaData": {"MMSI": 1, "Latitude": 1.0, "Longitude": 2.0, "time_utc": 10**400}})

    assert record is not None
    assert parse_iso_timestamp(record.timestamp) is not None
    assert to_iso_timestamp(10**400) is None


def test_overflowing_coordinate_is_absent() -> None:
    assert safe_float(10**400) is None
    assert normalize({"MetaData": {"MMSI": 1, "Latitude": 10**400, "Longitude": 2.0}}) is None
