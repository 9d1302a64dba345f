"""Custom exception hierarchy for portais."""

from __future__ import annotations


class AisError(Exception):
    """Base exception for all portais errors."""


class AisConfigError(AisError):
    """Invalid or missing configuration (e.g. no feed API key)."""


class AisTransportError(AisError):
    """Websocket-level failure before a session settled (DNS, connect, error frame)."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
    ) -> None:
        self.url = url
        super().__init__(message)


class AisParseError(AisError):
    """A single inbound frame was not well-formed JSON.

    Sessions catch this, log it and keep collecting; it never aborts a
    session.
    """

    def __init__(
        self,
        message: str,
        *,
        preview: str = "",
    ) -> None:
        self.preview = preview
        super().__init__(message)


class AisRequestError(AisError, ValueError):
    """Caller supplied an invalid request (bounds, budget, identifier)."""


class AisUnsupportedIdentifierError(AisRequestError):
    """The feed cannot filter on the requested identifier type.

    The live stream only accepts MMSI allow-lists; IMO lookups have to be
    resolved to an MMSI by the caller first.
    """

    def __init__(self, id_type: str, *, supported: tuple[str, ...] = ()) -> None:
        self.id_type = id_type
        self.supported = supported
        listed = ", ".join(supported) or "none"
        super().__init__(f"Identifier type {id_type!r} is not supported by the feed (supported: {listed})")
