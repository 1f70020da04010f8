"""AirPods BLE - Unofficial battery status reader for Apple AirPods.

This library decodes the battery and charging status that AirPods, AirPods Pro
and AirPods Max broadcast in their Bluetooth Low Energy advertisements. It is
read-only: nothing is connected to, paired with or written.

Supported devices:
- AirPods 1, 2, 3, 4
- AirPods Pro, Pro 2, Pro 3
- AirPods Max
- Newer models decode with the generic name "AirPods"

Disclaimer: This project is not affiliated with, endorsed by, or connected to
Apple Inc. All trademarks are the property of their respective owners.

Basic Usage:
    from airpods_ble import format_status
    from airpods_ble.connect import scan_direct

    status = await scan_direct(timeout=3.0)
    if status:
        print(format_status(status))

Decoding advertisements you already have (e.g. from Home Assistant):
    from airpods_ble import APPLE_COMPANY_ID, decode

    data = advertisement.manufacturer_data.get(APPLE_COMPANY_ID)
    status = decode(data) if data else None

Via ESPHome Proxy:
    from airpods_ble.connect import scan_via_proxy

    status = await scan_via_proxy("192.168.1.100", api_key)
"""

from __future__ import annotations

from .connect import (
    AdapterNotFoundError,
    AirPodsScanError,
    ScanInProgressError,
)
from .protocol import (
    # Constants
    AIRPODS_DATA_LENGTH,
    APPLE_COMPANY_ID,
    MODEL_NAMES,
    # Data classes
    InEarStatus,
    OverEarStatus,
    Status,
    # Functions
    decode,
    decode_advertisement,
    decode_battery,
    format_status,
    is_airpods_advertisement,
    is_flipped,
    is_single_unit,
    resolve_model_name,
    status_to_dict,
)
from .scanner import AirPodsScanner

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Primary interface
    "AirPodsScanner",
    "decode",
    # Data classes
    "InEarStatus",
    "OverEarStatus",
    "Status",
    # Errors
    "AirPodsScanError",
    "AdapterNotFoundError",
    "ScanInProgressError",
    # Constants
    "APPLE_COMPANY_ID",
    "AIRPODS_DATA_LENGTH",
    "MODEL_NAMES",
    # Protocol functions (for advanced use)
    "decode_advertisement",
    "decode_battery",
    "format_status",
    "is_airpods_advertisement",
    "is_flipped",
    "is_single_unit",
    "resolve_model_name",
    "status_to_dict",
]
