"""Keyed latest-wins store for one collection burst.

Vessels broadcast several times a second; a few-second burst sees many
reports per vessel. The aggregator keeps one record per ``vessel_id``.
"""

from __future__ import annotations

from portais.models.position import PositionRecord
from portais.state.policy import OverwritePolicy, should_replace


class ResultAggregator:
    """Deduplicate records by ``vessel_id``.

    Created at session start, mutated only by message arrival and
    snapshotted once at settlement.
    """

    def __init__(self, *, policy: OverwritePolicy = OverwritePolicy.LAST_ARRIVAL) -> None:
        self._policy = policy
        self._records: dict[str, PositionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    @property
    def policy(self) -> OverwritePolicy:
        return self._policy

    def insert(self, record: PositionRecord) -> bool:
        """Store ``record`` under its vessel id. Returns False if it was not stored."""
        if not record.vessel_id:
            return False
        cached = self._records.get(record.vessel_id)
        if not should_replace(cached, record, self._policy):
            return False
        self._records[record.vessel_id] = record
        return True

    def get(self, vessel_id: str) -> PositionRecord | None:
        return self._records.get(vessel_id)

    def snapshot(self) -> list[PositionRecord]:
        """Current records as a new list, in no guaranteed order."""
        return list(self._records.values())
