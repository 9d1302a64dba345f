from __future__ import annotations

from portais.models.position import PositionRecord
from portais.state.aggregator import ResultAggregator
from portais.state.policy import OverwritePolicy, should_replace


def _record(vessel_id: str | None, lat: float, timestamp: str = "2026-01-01T12:00:00.000Z") -> PositionRecord:
    return PositionRecord(vessel_id=vessel_id, lat=lat, lon=4.0, timestamp=timestamp)


def test_second_insert_for_same_vessel_replaces_first() -> None:
    aggregator = ResultAggregator()
    first = _record("987654321", 10.0)
    second = _record("987654321", 11.0)

    aggregator.insert(first)
    aggregator.insert(second)

    assert len(aggregator) == 1
    assert aggregator.get("987654321") is second
    assert aggregator.snapshot() == [second]


def test_last_arrival_wins_even_when_older() -> None:
    aggregator = ResultAggregator()
    aggregator.insert(_record("1", 10.0, "2026-01-01T12:00:05.000Z"))
    aggregator.insert(_record("1", 11.0, "2026-01-01T12:00:00.000Z"))

    stored = aggregator.get("1")
    assert stored is not None
    assert stored.lat == 11.0


def test_newest_timestamp_policy_keeps_newer_report() -> None:
    aggregator = ResultAggregator(policy=OverwritePolicy.NEWEST_TIMESTAMP)
    assert aggregator.insert(_record("1", 10.0, "2026-01-01T12:00:05.000Z")) is True
    assert aggregator.insert(_record("1", 11.0, "2026-01-01T12:00:00.000Z")) is False
    assert aggregator.insert(_record("1", 12.0, "2026-01-01T12:00:09.000Z")) is True

    stored = aggregator.get("1")
    assert stored is not None
    assert stored.lat == 12.0


def test_newest_timestamp_policy_falls_back_to_arrival_for_unparseable() -> None:
    cached = _record("1", 10.0, "2026-01-01T12:00:05.000Z")
    incoming = _record("1", 11.0, "not a time")
    assert should_replace(cached, incoming, OverwritePolicy.NEWEST_TIMESTAMP) is True


def test_records_without_vessel_id_are_not_stored() -> None:
    aggregator = ResultAggregator()
    assert aggregator.insert(_record(None, 10.0)) is False
    assert len(aggregator) == 0


def test_snapshot_is_a_copy() -> None:
    aggregator = ResultAggregator()
    aggregator.insert(_record("1", 10.0))
    snapshot = aggregator.snapshot()
    aggregator.insert(_record("2", 11.0))

    assert len(snapshot) == 1
    assert {record.vessel_id for record in aggregator.snapshot()} == {"1", "2"}
