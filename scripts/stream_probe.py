#!/usr/bin/env python3
"""Live probe for the AIS position feed.

Runs one bounded stream session and prints the collected records as JSON.
Use it to check the API key, the subscription frame and how many vessels a
zone or MMSI filter yields within a budget.

Credentials: AISSTREAM_API_KEY (and optional AISSTREAM_WS_URL).

Examples::

    stream_probe.py zone --minlat 51.8 --maxlat 52.1 --minlon 3.9 --maxlon 4.5
    stream_probe.py mmsi 244660000 --timeout 10
    stream_probe.py track 244660000 --timeout 20 --max 50
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from portais import AisClient, AisError, AisStreamConfig, ZoneBounds  # noqa: E402

_LOG = logging.getLogger("stream_probe")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect one burst of live AIS positions.")
    parser.add_argument("--timeout", type=float, default=None, help="Collection budget in seconds.")
    parser.add_argument("--max", type=int, default=None, help="Stop after this many distinct vessels.")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging (API key redacted).")
    sub = parser.add_subparsers(dest="command", required=True)

    zone = sub.add_parser("zone", help="Vessels inside a bounding box.")
    for name in ("minlat", "maxlat", "minlon", "maxlon"):
        zone.add_argument(f"--{name}", required=True)

    mmsi = sub.add_parser("mmsi", help="Latest position for one MMSI.")
    mmsi.add_argument("mmsi")

    track = sub.add_parser("track", help="Short live track for one MMSI.")
    track.add_argument("mmsi")
    return parser.parse_args()


def _budget(args: argparse.Namespace) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if args.timeout is not None:
        kwargs["timeout"] = args.timeout
    if args.max is not None and args.command != "mmsi":
        kwargs["max_records"] = args.max
    return kwargs


async def _run(args: argparse.Namespace) -> Any:
    config = AisStreamConfig.from_env()
    async with AisClient(config) as client:
        if args.command == "zone":
            bounds = ZoneBounds.from_query(vars(args))
            records = await client.fetch_vessels_in_zone(bounds, **_budget(args))
            return [record.to_payload() for record in records]
        if args.command == "mmsi":
            record = await client.fetch_latest_position_by_mmsi(args.mmsi, **_budget(args))
            return record.to_payload() if record is not None else None
        records = await client.fetch_track_by_mmsi(args.mmsi, **_budget(args))
        return [record.to_payload() for record in records]


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        result = asyncio.run(_run(args))
    except AisError as exc:
        _LOG.error("%s: %s", type(exc).__name__, exc)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
