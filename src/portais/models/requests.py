"""Pydantic request models for client entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used internally by :class:`portais.client.AisClient` and
:class:`portais.session.StreamSession`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portais._constants import DEFAULT_STREAM_MAX_RECORDS, DEFAULT_STREAM_TIMEOUT
from portais.exceptions import AisRequestError

BoundingBox = list[list[float]]
"""``[[minlat, minlon], [maxlat, maxlon]]`` as the feed expects it."""

_QUERY_ORDER: tuple[str, ...] = ("minlon", "maxlon", "minlat", "maxlat")


class ZoneBounds(BaseModel):
    """Rectangular lat/lon zone."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    minlat: float = Field(ge=-90.0, le=90.0)
    maxlat: float = Field(ge=-90.0, le=90.0)
    minlon: float = Field(ge=-180.0, le=180.0)
    maxlon: float = Field(ge=-180.0, le=180.0)

    @field_validator("minlat", "maxlat", "minlon", "maxlon")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("bounds must be finite numbers")
        return value

    def as_bounding_box(self) -> BoundingBox:
        return [[self.minlat, self.minlon], [self.maxlat, self.maxlon]]

    @classmethod
    def from_query(cls, params: Mapping[str, Any]) -> ZoneBounds:
        """Build bounds from string query parameters.

        Every missing and every non-numeric parameter is reported in one
        :class:`AisRequestError` instead of failing on the first.
        """
        missing = [name for name in _QUERY_ORDER if params.get(name) is None or params.get(name) == ""]
        if missing:
            raise AisRequestError(f"Missing required parameters: {', '.join(missing)}")

        parsed: dict[str, float] = {}
        invalid: list[str] = []
        for name in _QUERY_ORDER:
            try:
                value = float(params[name])
            except (TypeError, ValueError):
                invalid.append(name)
                continue
            if not math.isfinite(value):
                invalid.append(name)
                continue
            parsed[name] = value
        if invalid:
            raise AisRequestError(f"Invalid numeric values for: {', '.join(invalid)}")

        try:
            return cls(**parsed)
        except ValueError as exc:
            raise AisRequestError(f"Invalid zone bounds: {exc}") from exc


class StreamRequest(BaseModel):
    """One bounded collection burst against the feed."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
    )

    bounding_boxes: list[BoundingBox] = Field(min_length=1)
    vessel_ids: list[str] | None = None
    timeout: float = Field(default=DEFAULT_STREAM_TIMEOUT, gt=0)
    """Collection budget in seconds, measured from session open."""
    max_records: int = Field(default=DEFAULT_STREAM_MAX_RECORDS, ge=1)
    """Number of distinct vessels that ends the burst early."""

    @field_validator("bounding_boxes")
    @classmethod
    def _box_shape(cls, value: list[BoundingBox]) -> list[BoundingBox]:
        for box in value:
            if len(box) != 2 or any(len(corner) != 2 for corner in box):
                raise ValueError("each bounding box must be [[lat, lon], [lat, lon]]")
        return value

    @field_validator("vessel_ids", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        ids = [str(item).strip() for item in value if item is not None and str(item).strip()]
        return ids or None
