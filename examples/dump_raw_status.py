#!/usr/bin/env python3
"""Dump raw Apple advertisements seen nearby.

This diagnostic script shows the manufacturer data bytes of every Apple
advertisement received during a scan, with the AirPods fields broken out.
Useful for identifying model codes missing from MODEL_NAMES.

Usage:
    python dump_raw_status.py [SCAN_SECONDS]
"""

import asyncio
import sys

from bleak import BleakScanner

from airpods_ble.protocol import (
    APPLE_COMPANY_ID,
    AdvertisementOffset,
    decode,
    get_model_id,
    high_nibble,
    is_airpods_advertisement,
    is_flipped,
    is_single_unit,
    low_nibble,
    resolve_model_name,
)


def hexdump(data: bytes, offset: int = 0) -> str:
    """Format bytes as hex dump with offsets."""
    lines = []
    for i in range(0, len(data), 16):
        hex_part = " ".join(f"{b:02x}" for b in data[i:i+16])
        lines.append(f"{offset+i:04x}  {hex_part}")
    return "\n".join(lines)


def parse_key_bytes(data: bytes) -> dict:
    """Extract key fields from an AirPods payload."""
    pods = data[AdvertisementOffset.POD_BATTERY]
    flags_case = data[AdvertisementOffset.CASE_BATTERY]
    model_id = get_model_id(data)
    return {
        "model_id_b3_4": f"0x{model_id:04x} ({resolve_model_name(model_id)})",
        "single_unit_b3": is_single_unit(data),
        "flipped_b5": is_flipped(data),
        "pods_b6": f"high={high_nibble(pods)} low={low_nibble(pods)}",
        "charging_flags_b7": f"0b{high_nibble(flags_case):04b}",
        "case_b7": low_nibble(flags_case),
    }


async def main(duration: float):
    print(f"Scanning for {duration}s...")
    devices = await BleakScanner.discover(timeout=duration, return_adv=True)

    for device, adv in devices.values():
        data = adv.manufacturer_data.get(APPLE_COMPANY_ID)
        if data is None:
            continue

        print(f"\n--- {device.address} RSSI {adv.rssi} ({len(data)} bytes) ---")
        print(hexdump(data))

        if not is_airpods_advertisement(APPLE_COMPANY_ID, data):
            continue

        for key, value in parse_key_bytes(data).items():
            print(f"  {key}: {value}")
        print(f"  decoded: {decode(data)}")


if __name__ == "__main__":
    duration = float(sys.argv[1]) if len(sys.argv) > 1 else 5.0
    asyncio.run(main(duration))
