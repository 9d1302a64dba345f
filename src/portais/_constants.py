"""Internal constants shared across the library."""

WS_URL = "wss://stream.aisstream.io/v0/stream"
PROVIDER_NAME = "aisstream"

# Message types requested in every subscription frame.
FILTER_MESSAGE_TYPES: tuple[str, ...] = (
    "PositionReport",
    "ClassAPositionReport",
    "StandardClassBCSPositionReport",
)

# Whole-globe box used for single-vessel lookups: [[minlat, minlon], [maxlat, maxlon]].
GLOBAL_BOUNDING_BOX: list[list[float]] = [[-90.0, -180.0], [90.0, 180.0]]

# ------------------------------------------------------------------
# Collection budgets (seconds / record counts)
# ------------------------------------------------------------------

DEFAULT_STREAM_TIMEOUT = 2.0
DEFAULT_STREAM_MAX_RECORDS = 200
ZONE_TIMEOUT = 2.0
ZONE_MAX_RECORDS = 150
LATEST_POSITION_TIMEOUT = 5.0
LATEST_POSITION_MAX_RECORDS = 5
TRACK_TIMEOUT = 2.0
TRACK_MAX_RECORDS = 100
DEFAULT_TRACK_HOURS = 24

# ------------------------------------------------------------------
# Cache
# ------------------------------------------------------------------

DEFAULT_CACHE_TTL = 300
DEFAULT_CACHE_CHECK_PERIOD = 60.0
ZONE_KEY_PRECISION = 4
