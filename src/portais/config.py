"""Client configuration for portais."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from portais._constants import DEFAULT_CACHE_CHECK_PERIOD, WS_URL


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class AisStreamConfig:
    """Client configuration.

    Parameters
    ----------
    api_key : str or None
        aisstream.io API key presented in the subscription frame. Every
        fetch fails with :class:`~portais.exceptions.AisConfigError` while
        this is unset.
    ws_url : str
        Websocket endpoint of the position feed.
    heartbeat : float or None
        Websocket ping interval in seconds (``None`` disables pings).
    close_timeout : float
        Seconds to wait for the close handshake during teardown before the
        underlying connection is dropped.
    cache_check_period : float
        Interval in seconds of the background cache sweep.
    trace_frames : bool
        Log every inbound frame (redacted) at DEBUG level.
    """

    api_key: str | None = None
    ws_url: str = WS_URL
    heartbeat: float | None = None
    close_timeout: float = 1.0
    cache_check_period: float = DEFAULT_CACHE_CHECK_PERIOD
    trace_frames: bool = False

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @classmethod
    def from_env(cls, **overrides: Any) -> AisStreamConfig:
        """Create configuration from environment variables.

        Reads ``AISSTREAM_API_KEY``, ``AISSTREAM_WS_URL`` and the optional
        ``AISSTREAM_*`` tuning variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        AisStreamConfig
            Populated configuration.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        _ENV_CONFIG_MAP = {
            "AISSTREAM_API_KEY": "api_key",
            "AISSTREAM_WS_URL": "ws_url",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        heartbeat_env = env.get("AISSTREAM_HEARTBEAT")
        if heartbeat_env and "heartbeat" not in overrides:
            config_kwargs["heartbeat"] = float(heartbeat_env)

        close_env = env.get("AISSTREAM_CLOSE_TIMEOUT")
        if close_env and "close_timeout" not in overrides:
            config_kwargs["close_timeout"] = float(close_env)

        period_env = env.get("AISSTREAM_CACHE_CHECK_PERIOD")
        if period_env and "cache_check_period" not in overrides:
            config_kwargs["cache_check_period"] = float(period_env)

        if "trace_frames" not in overrides:
            config_kwargs["trace_frames"] = _env_bool(env.get("AISSTREAM_TRACE_FRAMES"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
