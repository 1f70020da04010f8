#!/usr/bin/env python3
"""Basic usage example for airpods-ble.

This example shows how to:
1. Scan for AirPods with the local adapter
2. Display the decoded status
3. Handle the two device shapes (in-ear and over-ear)

Requirements:
    pip install airpods-ble

Usage:
    python basic_usage.py [ADAPTER]

Open the AirPods case lid (or wear the AirPods) before running.
"""

import asyncio
import sys

from airpods_ble import (
    InEarStatus,
    OverEarStatus,
    ScanInProgressError,
    format_status,
)
from airpods_ble.connect import scan_direct


async def main(adapter: str | None = None):
    print("Scanning for AirPods...")
    try:
        status = await scan_direct(timeout=5.0, adapter=adapter)
    except ScanInProgressError as e:
        print(e)
        return

    if status is None:
        print("No AirPods found. Make sure:")
        print("  - The case lid is open or the AirPods are in your ears")
        print("  - Bluetooth is enabled on this machine")
        print("  - The AirPods are within Bluetooth range")
        return

    print(f"\n--- {status.model} ---")
    print(format_status(status))

    if isinstance(status, InEarStatus):
        levels = [level for level in (status.left, status.right) if level is not None]
        if levels:
            print(f"\nLowest earpiece: {min(levels)}%")
    elif isinstance(status, OverEarStatus) and status.battery <= 15 and not status.charging:
        print("\nBattery low, connect a charger")


if __name__ == "__main__":
    adapter = sys.argv[1] if len(sys.argv) > 1 else None
    asyncio.run(main(adapter))
