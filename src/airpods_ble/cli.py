"""Command-line interface: print the battery status of nearby AirPods.

Usage:
    airpods-ble [--json] [--timeout SECONDS] [--adapter hci0]
    airpods-ble --proxy-host 192.168.1.100 --proxy-key KEY

Settings fall back to environment variables: AIRPODS_SCAN_TIMEOUT,
AIRPODS_ADAPTER, ESPHOME_PROXY_HOST, ESPHOME_API_KEY, ESPHOME_PROXY_PORT.

Exit status is 0 when AirPods were found and 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from .connect import AirPodsScanError, scan_direct, scan_via_proxy
from .protocol import Status, format_status, status_to_dict

NOT_FOUND_MESSAGE = "AirPods not found"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="airpods-ble",
        description="Show battery status of nearby AirPods",
        allow_abbrev=False,
    )
    p.add_argument("--json", action="store_true", help="Output as JSON")
    # String defaults from the environment go through `type`, so a bad value
    # is reported as a usage error
    p.add_argument(
        "--timeout", type=float,
        default=os.environ.get("AIRPODS_SCAN_TIMEOUT"),
        help="Maximum scan duration in seconds (default: 3, or 10 via a proxy)",
    )
    p.add_argument(
        "--interval", type=float, default=0.5,
        help="Delay between polls of discovered devices in seconds",
    )
    p.add_argument(
        "--adapter", default=os.environ.get("AIRPODS_ADAPTER"),
        help="Local Bluetooth adapter (e.g. hci1)",
    )
    p.add_argument(
        "--proxy-host", default=os.environ.get("ESPHOME_PROXY_HOST"),
        help="Scan through this ESPHome bluetooth_proxy instead of the local adapter",
    )
    p.add_argument(
        "--proxy-key", default=os.environ.get("ESPHOME_API_KEY"),
        help="ESPHome API encryption key (noise_psk)",
    )
    p.add_argument(
        "--proxy-port", type=int,
        default=os.environ.get("ESPHOME_PROXY_PORT", "6053"),
        help="ESPHome API port (default: 6053)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p


async def _scan(args: argparse.Namespace) -> Status | None:
    kwargs: dict[str, float] = {"interval": args.interval}
    if args.timeout is not None:
        kwargs["timeout"] = args.timeout

    if args.proxy_host:
        return await scan_via_proxy(
            args.proxy_host,
            args.proxy_key,
            proxy_port=args.proxy_port,
            **kwargs,
        )
    return await scan_direct(adapter=args.adapter, **kwargs)


def _print_error(message: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"error": message}))
    else:
        print(message, file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.proxy_host and not args.proxy_key:
        parser.error("--proxy-key (or ESPHOME_API_KEY) is required with --proxy-host")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        status = asyncio.run(_scan(args))
    except AirPodsScanError as exc:
        _print_error(str(exc) if args.json else f"Error: {exc}", args.json)
        return 1
    except KeyboardInterrupt:
        return 1

    if status is None:
        _print_error(NOT_FOUND_MESSAGE, args.json)
        return 1

    if args.json:
        print(json.dumps(status_to_dict(status), indent=2))
    else:
        print(format_status(status))
    return 0


if __name__ == "__main__":
    sys.exit(main())
