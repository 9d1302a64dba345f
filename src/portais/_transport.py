"""Websocket transport for the position feed."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from portais.config import AisStreamConfig
from portais.exceptions import AisTransportError

_logger = logging.getLogger(__name__)


class FeedMessage(Protocol):
    """Inbound frame as delivered by the transport (``aiohttp.WSMessage`` shape)."""

    @property
    def type(self) -> aiohttp.WSMsgType: ...

    @property
    def data(self) -> Any: ...


class FeedConnection(Protocol):
    """One open duplex connection to the feed."""

    async def send_json(self, payload: Mapping[str, Any]) -> None: ...

    async def receive(self) -> FeedMessage: ...

    async def close(self) -> None: ...


class FeedTransport(Protocol):
    """Structural transport interface used by :class:`portais.session.StreamSession`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`WebSocketTransport`) concrete.
    """

    async def connect(self, url: str) -> FeedConnection: ...


class WebSocketConnection:
    """aiohttp websocket plus the HTTP session that owns its socket."""

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        *,
        url: str,
        close_timeout: float,
        owned_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._ws = ws
        self._url = url
        self._close_timeout = close_timeout
        self._owned_session = owned_session

    async def send_json(self, payload: Mapping[str, Any]) -> None:
        try:
            await self._ws.send_str(json.dumps(payload, separators=(",", ":")))
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise AisTransportError(f"Sending to {self._url} failed: {exc}", url=self._url) from exc

    async def receive(self) -> aiohttp.WSMessage:
        try:
            return await self._ws.receive()
        except (aiohttp.ClientError, ConnectionError, TimeoutError) as exc:
            raise AisTransportError(f"Receiving from {self._url} failed: {exc}", url=self._url) from exc

    async def close(self) -> None:
        """Tear the connection down without waiting on a half-closed peer.

        The close handshake gets ``close_timeout`` seconds; after that the
        owning HTTP session is closed, which drops the socket.
        """
        try:
            if not self._ws.closed:
                await asyncio.wait_for(self._ws.close(), self._close_timeout)
        except (TimeoutError, aiohttp.ClientError, ConnectionError):
            _logger.debug("Websocket close handshake abandoned url=%s", self._url, exc_info=True)
        finally:
            session = self._owned_session
            self._owned_session = None
            if session is not None:
                await session.close()


class WebSocketTransport:
    """Opens websocket connections with aiohttp."""

    def __init__(
        self,
        config: AisStreamConfig,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._http = http_session

    async def connect(self, url: str) -> WebSocketConnection:
        owned: aiohttp.ClientSession | None = None
        session = self._http
        if session is None:
            owned = aiohttp.ClientSession()
            session = owned

        _logger.debug("WS CONNECT %s", url)
        try:
            ws = await session.ws_connect(url, heartbeat=self._config.heartbeat, autoping=True)
        except (aiohttp.ClientError, OSError, TimeoutError) as exc:
            if owned is not None:
                await owned.close()
            raise AisTransportError(f"Connection to {url} failed: {exc}", url=url) from exc
        except BaseException:
            if owned is not None:
                await owned.close()
            raise

        return WebSocketConnection(
            ws,
            url=url,
            close_timeout=self._config.close_timeout,
            owned_session=owned,
        )
