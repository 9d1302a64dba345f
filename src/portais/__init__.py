"""portais - Async client for live AIS vessel positions."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("portais")
except PackageNotFoundError:
    __version__ = "0+local"
from portais.cache import CacheStats, CacheTTL, PositionCache, position_key, track_key, zone_key
from portais.client import AisClient, ProviderInfo
from portais.config import AisStreamConfig
from portais.exceptions import (
    AisConfigError,
    AisError,
    AisParseError,
    AisRequestError,
    AisTransportError,
    AisUnsupportedIdentifierError,
)
from portais.ingestion.positions import normalize
from portais.models import IdentifierType, PositionRecord, StreamRequest, ZoneBounds
from portais.session import SessionOutcome, SettleTrigger, StreamSession
from portais.state import OverwritePolicy, ResultAggregator

__all__ = [
    "__version__",
    "AisClient",
    "AisConfigError",
    "AisError",
    "AisParseError",
    "AisRequestError",
    "AisStreamConfig",
    "AisTransportError",
    "AisUnsupportedIdentifierError",
    "CacheStats",
    "CacheTTL",
    "IdentifierType",
    "OverwritePolicy",
    "PositionCache",
    "PositionRecord",
    "ProviderInfo",
    "ResultAggregator",
    "SessionOutcome",
    "SettleTrigger",
    "StreamRequest",
    "StreamSession",
    "ZoneBounds",
    "normalize",
    "position_key",
    "track_key",
    "zone_key",
]
