"""Bounded streaming session against the AIS position feed.

A session connects, sends one subscription frame and collects position
reports until exactly one of four triggers settles it:

- the timeout budget expires (resolve)
- ``max_records`` distinct vessels were collected (resolve)
- the upstream closes the connection (resolve with partial results)
- a transport error occurs (reject)

An optional external ``asyncio.Event`` acts as a fifth, cancelling trigger.
Whichever trigger fires first settles the session; all later ones are no-ops.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import aiohttp

from portais._constants import FILTER_MESSAGE_TYPES
from portais._redact import preview_frame, redact_for_log
from portais._transport import FeedConnection, FeedTransport, WebSocketTransport
from portais.config import AisStreamConfig
from portais.exceptions import AisConfigError, AisParseError, AisTransportError
from portais.ingestion.positions import normalize
from portais.models.position import PositionRecord
from portais.models.requests import StreamRequest
from portais.state.aggregator import ResultAggregator
from portais.state.policy import OverwritePolicy

_logger = logging.getLogger(__name__)

_CLOSE_TYPES = frozenset({aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED})
_DATA_TYPES = frozenset({aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY})


class SettleTrigger(StrEnum):
    TIMEOUT = "timeout"
    MAX_RECORDS = "max_records"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class SessionOutcome:
    """Result of a resolved session plus collection counters."""

    records: list[PositionRecord]
    trigger: SettleTrigger
    frames_received: int = 0
    parse_failures: int = 0
    dropped: int = 0
    elapsed: float = 0.0


def require_api_key(config: AisStreamConfig) -> str:
    api_key = (config.api_key or "").strip()
    if not api_key:
        raise AisConfigError("AISSTREAM_API_KEY is not set")
    return api_key


def build_subscription(api_key: str, request: StreamRequest) -> dict[str, Any]:
    """Subscription frame sent once right after the connection opens."""
    payload: dict[str, Any] = {
        "APIKey": api_key,
        "BoundingBoxes": request.bounding_boxes,
        "FilterMessageTypes": list(FILTER_MESSAGE_TYPES),
    }
    if request.vessel_ids:
        payload["FiltersShipMMSI"] = list(request.vessel_ids)
    return payload


def decode_frame(data: Any) -> dict[str, Any]:
    """Parse one inbound frame into a JSON object.

    Raises
    ------
    AisParseError
        The frame is not UTF-8 JSON or not a JSON object.
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise AisParseError(f"Frame is not valid JSON: {exc}", preview=preview_frame(data)) from exc
    if not isinstance(parsed, dict):
        raise AisParseError("Frame is not a JSON object", preview=preview_frame(data))
    return parsed


class _Collection:
    """State of one ``StreamSession.open`` call."""

    def __init__(
        self,
        *,
        request: StreamRequest,
        subscription: dict[str, Any],
        transport: FeedTransport,
        url: str,
        policy: OverwritePolicy,
        trace_frames: bool,
        clock: Callable[[], float],
    ) -> None:
        self._request = request
        self._subscription = subscription
        self._transport = transport
        self._url = url
        self._trace_frames = trace_frames
        self._clock = clock
        self._loop = asyncio.get_running_loop()
        # Done-ness of this future is the "already settled" flag.
        self._outcome: asyncio.Future[SessionOutcome] = self._loop.create_future()
        self._aggregator = ResultAggregator(policy=policy)
        self._conn: FeedConnection | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._reader: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._started = clock()
        self._frames = 0
        self._parse_failures = 0
        self._dropped = 0

    @property
    def settled(self) -> bool:
        return self._outcome.done()

    def settle(self, trigger: SettleTrigger, error: BaseException | None = None) -> bool:
        """Settle the session once. Returns False when it was already settled.

        Every trigger runs on the event loop thread and nothing between the
        check and the set yields to the loop, so the check-and-set is atomic.
        """
        if self._outcome.done():
            return False
        if error is not None:
            self._outcome.set_exception(error)
        else:
            self._outcome.set_result(
                SessionOutcome(
                    records=self._aggregator.snapshot(),
                    trigger=trigger,
                    frames_received=self._frames,
                    parse_failures=self._parse_failures,
                    dropped=self._dropped,
                    elapsed=self._clock() - self._started,
                )
            )
        _logger.debug(
            "Stream session settled trigger=%s vessels=%d frames=%d parse_failures=%d",
            trigger,
            len(self._aggregator),
            self._frames,
            self._parse_failures,
        )
        self._halt()
        return True

    def _halt(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        current = asyncio.current_task()
        for task in (self._reader, self._watcher):
            if task is not None and task is not current and not task.done():
                task.cancel()

    async def run(self, cancel: asyncio.Event | None) -> SessionOutcome:
        self._timer = self._loop.call_later(self._request.timeout, self.settle, SettleTrigger.TIMEOUT)
        self._reader = asyncio.create_task(self._pump())
        if cancel is not None:
            self._watcher = asyncio.create_task(self._watch(cancel))
        try:
            return await self._outcome
        finally:
            self._halt()
            await self._teardown()

    async def _watch(self, cancel: asyncio.Event) -> None:
        await cancel.wait()
        self.settle(SettleTrigger.CANCELLED)

    async def _teardown(self) -> None:
        pending = [task for task in (self._reader, self._watcher) if task is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        conn = self._conn
        self._conn = None
        if conn is None:
            return
        try:
            await conn.close()
        except (AisTransportError, aiohttp.ClientError, ConnectionError):
            _logger.debug("Stream connection close failed url=%s", self._url, exc_info=True)

    async def _pump(self) -> None:
        try:
            self._conn = await self._transport.connect(self._url)
            if self.settled:
                return
            await self._conn.send_json(self._subscription)
            _logger.debug("Stream subscription sent %s", redact_for_log(self._subscription))

            while not self.settled:
                msg = await self._conn.receive()
                if msg.type in _DATA_TYPES:
                    try:
                        self._on_frame(msg.data)
                    except Exception:
                        self._parse_failures += 1
                        _logger.warning("Ignoring stream frame that failed processing", exc_info=True)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.settle(
                        SettleTrigger.ERROR,
                        AisTransportError(f"Stream error from {self._url}: {msg.data!r}", url=self._url),
                    )
                    return
                elif msg.type in _CLOSE_TYPES:
                    self.settle(SettleTrigger.CLOSED)
                    return
        except AisTransportError as exc:
            self.settle(SettleTrigger.ERROR, exc)
        except Exception as exc:
            _logger.error("Stream reader failed url=%s", self._url, exc_info=True)
            self.settle(
                SettleTrigger.ERROR,
                AisTransportError(f"Stream reader failed for {self._url}: {exc}", url=self._url),
            )

    def _on_frame(self, data: Any) -> None:
        self._frames += 1
        try:
            message = decode_frame(data)
        except AisParseError as exc:
            self._parse_failures += 1
            _logger.warning("Ignoring malformed stream frame: %s preview=%r", exc, exc.preview)
            return

        if self._trace_frames:
            _logger.debug("Stream frame %s", redact_for_log(message))

        if "error" in message and "MetaData" not in message:
            _logger.warning("Feed reported an error: %s", redact_for_log(message.get("error")))
            return

        record = normalize(message)
        if record is None or not record.vessel_id:
            self._dropped += 1
            _logger.debug("Dropped stream message without position or vessel id type=%s", message.get("MessageType"))
            return

        self._aggregator.insert(record)
        if len(self._aggregator) >= self._request.max_records:
            self.settle(SettleTrigger.MAX_RECORDS)


class StreamSession:
    """Runs bounded collection bursts against the feed.

    Usage::

        session = StreamSession(AisStreamConfig.from_env())
        records = await session.open(StreamRequest(bounding_boxes=[box], timeout=2.0))

    Every :meth:`open` call is an independent session with its own
    connection and aggregation burst.
    """

    def __init__(
        self,
        config: AisStreamConfig,
        *,
        transport: FeedTransport | None = None,
        http_session: aiohttp.ClientSession | None = None,
        policy: OverwritePolicy = OverwritePolicy.LAST_ARRIVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._transport: FeedTransport = transport or WebSocketTransport(config, http_session)
        self._policy = policy
        self._clock = clock

    async def open(self, request: StreamRequest, *, cancel: asyncio.Event | None = None) -> list[PositionRecord]:
        """Collect records for ``request``; see :meth:`open_detailed`."""
        outcome = await self.open_detailed(request, cancel=cancel)
        return outcome.records

    async def open_detailed(
        self,
        request: StreamRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> SessionOutcome:
        """Run one session and return its records with collection counters.

        Raises
        ------
        AisConfigError
            No API key is configured. Raised before any connection attempt.
        AisTransportError
            Connecting failed or the stream errored before settlement.
        """
        api_key = require_api_key(self._config)
        collection = _Collection(
            request=request,
            subscription=build_subscription(api_key, request),
            transport=self._transport,
            url=self._config.ws_url,
            policy=self._policy,
            trace_frames=self._config.trace_frames,
            clock=self._clock,
        )
        return await collection.run(cancel)
