"""Raw feed message -> :class:`PositionRecord`.

Field extraction is driven by :data:`FIELD_PRECEDENCE`: for every canonical
field an ordered tuple of accessors is tried until one yields a present
value. The table is the single place that documents which historical field
spellings the feed (and older relays) use.

:func:`normalize` is pure and never raises. Messages without a numeric
latitude *and* longitude produce ``None``; they are never defaulted to zero.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from portais.ingestion.normalize import (
    is_present,
    nonzero_float,
    safe_float,
    safe_identifier,
    safe_str,
    to_iso_timestamp,
    utc_now_iso,
)
from portais.models.position import PositionRecord

# Named body variants, in lookup order.
POSITION_BODY_KEYS: tuple[str, ...] = (
    "PositionReport",
    "ClassAPositionReport",
    "StandardClassBPositionReport",
    "StandardClassBCSPositionReport",
    "ExtendedClassBPositionReport",
)

# ITU-R M.1371 navigational status codes.
NAV_STATUS_TEXT: dict[int, str] = {
    0: "Under way using engine",
    1: "At anchor",
    2: "Not under command",
    3: "Restricted manoeuverability",
    4: "Constrained by her draught",
    5: "Moored",
    6: "Aground",
    7: "Engaged in fishing",
    8: "Under way sailing",
    14: "AIS-SART active",
    15: "Not defined",
}


@dataclass(frozen=True, slots=True)
class MessageBlocks:
    """The three groupings of a raw message that accessors read from."""

    top: Mapping[str, Any]
    meta: Mapping[str, Any]
    body: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class FieldAccessor:
    """Reads ``key`` from one block of a message."""

    block: str
    key: str

    def __call__(self, blocks: MessageBlocks) -> Any:
        source: Mapping[str, Any] = getattr(blocks, self.block)
        return source.get(self.key)

    def __repr__(self) -> str:
        return f"{self.block}.{self.key}"


def _meta(*keys: str) -> tuple[FieldAccessor, ...]:
    return tuple(FieldAccessor("meta", key) for key in keys)


def _body(*keys: str) -> tuple[FieldAccessor, ...]:
    return tuple(FieldAccessor("body", key) for key in keys)


def _top(*keys: str) -> tuple[FieldAccessor, ...]:
    return tuple(FieldAccessor("top", key) for key in keys)


FIELD_PRECEDENCE: dict[str, tuple[FieldAccessor, ...]] = {
    "lat": _meta("Latitude", "latitude") + _body("Latitude", "latitude"),
    "lon": _meta("Longitude", "longitude") + _body("Longitude", "longitude"),
    "vessel_id": _meta("MMSI", "mmsi") + _body("MMSI", "mmsi") + _top("MMSI", "mmsi") + _body("UserID"),
    "imo": _meta("IMO", "imo") + _body("IMO", "imo"),
    "name": _meta("ShipName", "shipName") + _body("ShipName", "shipName"),
    "call_sign": _meta("CallSign") + _body("CallSign"),
    "cog": _meta("COG") + _body("COG", "Cog", "cog"),
    "sog": _meta("SOG") + _body("SOG", "Sog", "Speed", "sog"),
    "heading": _meta("Heading") + _body("Heading", "TrueHeading"),
    "nav_status": _meta("NavigationalStatus") + _body("NavigationalStatus", "NavStatus"),
    "timestamp": _meta("time_utc", "Timestamp", "timestamp") + _body("Timestamp", "timestamp"),
}


def first_present(blocks: MessageBlocks, accessors: tuple[FieldAccessor, ...]) -> Any:
    """Return the first present value along a precedence chain, else ``None``."""
    for accessor in accessors:
        value = accessor(blocks)
        if is_present(value):
            return value
    return None


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def split_message(raw: Mapping[str, Any]) -> MessageBlocks:
    """Locate the metadata block and the position body of a raw message."""
    meta = _as_mapping(raw.get("MetaData") or raw.get("metadata"))

    for key in POSITION_BODY_KEYS:
        body = raw.get(key)
        if isinstance(body, Mapping):
            return MessageBlocks(top=raw, meta=meta, body=body)

    message = _as_mapping(raw.get("Message"))
    declared = raw.get("MessageType")
    if isinstance(declared, str) and isinstance(message.get(declared), Mapping):
        return MessageBlocks(top=raw, meta=meta, body=message[declared])
    for key in POSITION_BODY_KEYS:
        body = message.get(key)
        if isinstance(body, Mapping):
            return MessageBlocks(top=raw, meta=meta, body=body)
    return MessageBlocks(top=raw, meta=meta, body=message)


def _nav_status(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return NAV_STATUS_TEXT.get(value, str(value))
    return safe_str(value)


_COERCERS: dict[str, Callable[[Any], Any]] = {
    "vessel_id": safe_identifier,
    "imo": safe_identifier,
    "name": safe_str,
    "call_sign": safe_str,
    "cog": nonzero_float,
    "sog": nonzero_float,
    "heading": nonzero_float,
    "nav_status": _nav_status,
}


def normalize(raw: Any) -> PositionRecord | None:
    """Map one raw feed message to a canonical record, or ``None``."""
    if not isinstance(raw, Mapping):
        return None
    try:
        blocks = split_message(raw)
        lat = safe_float(first_present(blocks, FIELD_PRECEDENCE["lat"]))
        lon = safe_float(first_present(blocks, FIELD_PRECEDENCE["lon"]))
        if lat is None or lon is None:
            return None

        fields: dict[str, Any] = {
            name: coerce(first_present(blocks, FIELD_PRECEDENCE[name])) for name, coerce in _COERCERS.items()
        }
        timestamp = to_iso_timestamp(first_present(blocks, FIELD_PRECEDENCE["timestamp"]))
        return PositionRecord(
            lat=lat,
            lon=lon,
            timestamp=timestamp or utc_now_iso(),
            **fields,
        )
    except (TypeError, ValueError, ArithmeticError):
        return None
