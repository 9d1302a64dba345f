"""Canonical vessel position model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IdentifierType(StrEnum):
    """Vessel identifier families used in cache keys and lookups."""

    MMSI = "mmsi"
    IMO = "imo"


class PositionRecord(BaseModel):
    """One normalized AIS position report.

    Only :func:`portais.ingestion.positions.normalize` should build these
    from raw feed messages; it guarantees ``lat``/``lon`` were present and
    numeric. Field names serialize to camelCase for the UI layer
    (``vesselId``, ``callSign``, ``navStatus``).

    Parameters
    ----------
    vessel_id : str or None
        Primary identifier, the MMSI for aisstream. Records without one
        are never aggregated.
    imo : str or None
        IMO number when the message carries one.
    name : str or None
        Reported ship name.
    call_sign : str or None
        Radio call sign.
    lat : float
        Latitude in degrees, -90..90.
    lon : float
        Longitude in degrees, -180..180.
    cog : float or None
        Course over ground in degrees.
    sog : float or None
        Speed over ground in knots.
    heading : float or None
        True heading in degrees.
    nav_status : str or None
        Navigational status.
    timestamp : str
        ISO-8601 time of the report (collection time when the feed omits it).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    vessel_id: str | None = None
    imo: str | None = None
    name: str | None = None
    call_sign: str | None = None
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    cog: float | None = None
    sog: float | None = None
    heading: float | None = None
    nav_status: str | None = None
    timestamp: str

    @field_validator("vessel_id")
    @classmethod
    def _blank_vessel_id_is_absent(cls, value: str | None) -> str | None:
        if value is None:
            return None
        vessel_id = value.strip()
        return vessel_id or None

    def to_payload(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
