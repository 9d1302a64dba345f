"""Data models for AIS feed results and requests."""

from portais.models.position import IdentifierType, PositionRecord
from portais.models.requests import BoundingBox, StreamRequest, ZoneBounds

__all__ = [
    "BoundingBox",
    "IdentifierType",
    "PositionRecord",
    "StreamRequest",
    "ZoneBounds",
]
