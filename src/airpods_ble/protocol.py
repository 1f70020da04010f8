"""AirPods BLE Protocol - Advertisement decoding.

This module contains the reverse-engineered layout of the "proximity pairing"
manufacturer data that Apple earphones and headphones broadcast over
Bluetooth Low Energy. Nothing here touches the radio: every function is a
pure transformation of bytes already received by a scanner.

Supported devices:
- AirPods 1, 2, 3, 4
- AirPods Pro, Pro 2, Pro 3
- AirPods Max
- Unknown models decode with the generic name "AirPods"

Payload overview (27 bytes, after the 0x004C company identifier):
- Byte 0-2: Continuity message type (0x07), length (0x19) and prefix
- Bytes 3-4: Model identifier, big-endian (e.g. 0x0E 0x20 = AirPods Pro)
- Byte 5: Status flags. Bit 0x02 clear means left/right are flipped
- Byte 6: Pod batteries, one nibble per earpiece
- Byte 7: High nibble = charging flags, low nibble = case battery
- Bytes 8+: Lid counter and encrypted data (ignored)

Battery nibbles: 0-9 = 5%..95% in steps of 10, 10 = 100%, 15 = not connected.
Codes 11-14 are not defined by the hardware and are treated as not connected.

Over-ear devices (AirPods Max) carry a single battery in the low nibble of
byte 6 and are recognised by the low nibble of byte 3 being 0x0A.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Union

_LOGGER = logging.getLogger(__name__)


def channel(name: str, *, charging: str | None = None) -> dict:
    """Create field metadata for a battery channel.

    Args:
        name: Human-readable channel name ("Left", "Case", ...)
        charging: Name of the boolean field holding this channel's charging flag
    """
    meta: dict[str, Any] = {"channel": True, "name": name}
    if charging:
        meta["charging"] = charging
    return meta


# =============================================================================
# Protocol Constants
# =============================================================================

APPLE_COMPANY_ID = 0x004C  # Apple Inc. (Bluetooth SIG company identifier)
AIRPODS_DATA_LENGTH = 27   # Proximity pairing payload: type + length + 25 bytes


class AdvertisementOffset:
    """Field offsets in the proximity pairing payload."""

    MODEL_HIGH = 3      # Model identifier, high byte (low nibble = topology)
    MODEL_LOW = 4       # Model identifier, low byte
    STATUS = 5          # Bit 0x02 set = not flipped
    POD_BATTERY = 6     # Two nibbles, one per earpiece (or single battery in low nibble)
    CASE_BATTERY = 7    # High nibble = charging flags, low nibble = case battery


class ChargingFlag:
    """Bits in the high nibble of byte 7.

    FIRST_POD and SECOND_POD are physical sides; which one is "left"
    depends on the flip bit.
    """

    FIRST_POD = 0x01
    SECOND_POD = 0x02
    CASE = 0x04


FLIP_MASK = 0x02
SINGLE_UNIT_TOPOLOGY = 0x0A  # Low nibble of byte 3 for over-ear devices

BATTERY_FULL = 10            # Nibble value for 100%
BATTERY_DISCONNECTED = 0x0F  # Sentinel for "not connected"

# Model identifier (bytes 3-4, big-endian) -> display name.
# Reverse-engineered from observed devices, so never complete.
MODEL_NAMES: dict[int, str] = {
    0x0220: "AirPods 1",
    0x0F20: "AirPods 2",
    0x1320: "AirPods 3",
    0x1920: "AirPods 4",
    0x0E20: "AirPods Pro",
    0x1420: "AirPods Pro 2",
    0x2420: "AirPods Pro 2",
    0x2720: "AirPods Pro 3",
    0x0A20: "AirPods Max",
    0x1F20: "AirPods Max",
}

DEFAULT_MODEL_NAME = "AirPods"


# =============================================================================
# Status records
# =============================================================================


@dataclass(frozen=True)
class InEarStatus:
    """Status of a dual-unit device: two earpieces and a charging case.

    Any battery may be None when that part is not connected (e.g. a pod
    sitting outside the case while the case reports, or a case that is
    out of range of the broadcasting pod).
    """

    model: str
    left: int | None = field(default=None, metadata=channel("Left", charging="charging_left"))
    right: int | None = field(default=None, metadata=channel("Right", charging="charging_right"))
    case: int | None = field(default=None, metadata=channel("Case", charging="charging_case"))
    charging_left: bool = False
    charging_right: bool = False
    charging_case: bool = False

    kind = "in_ear"


@dataclass(frozen=True)
class OverEarStatus:
    """Status of a single-unit device (AirPods Max)."""

    model: str
    battery: int = field(metadata=channel("Battery", charging="charging"))
    charging: bool = False

    kind = "over_ear"


Status = Union[InEarStatus, OverEarStatus]


# =============================================================================
# Bit helpers
# =============================================================================


def high_nibble(value: int) -> int:
    """Return bits 4-7 of a byte."""
    return (value >> 4) & 0x0F


def low_nibble(value: int) -> int:
    """Return bits 0-3 of a byte."""
    return value & 0x0F


def decode_battery(nibble: int) -> int | None:
    """Convert a 4-bit battery code to a percentage.

    Args:
        nibble: Raw battery code (0-15)

    Returns:
        5, 15, ... 95 for codes 0-9, 100 for code 10, or None when the
        part is not connected (15) or the code is undefined (11-14)
    """
    if nibble == BATTERY_FULL:
        return 100
    if 0 <= nibble < BATTERY_FULL:
        return nibble * 10 + 5
    return None


# =============================================================================
# Field resolvers
# =============================================================================


def is_airpods_advertisement(company_id: int, data: bytes) -> bool:
    """Check if a manufacturer data entry is a candidate AirPods payload.

    Args:
        company_id: 16-bit company identifier the data was keyed under
        data: Manufacturer data bytes

    Returns:
        True if the entry is Apple data of the proximity pairing length
    """
    return company_id == APPLE_COMPANY_ID and len(data) == AIRPODS_DATA_LENGTH


def candidate_payloads(manufacturer_data: Mapping[int, bytes]) -> Iterator[bytes]:
    """Yield the candidate AirPods payloads from a manufacturer data map.

    Args:
        manufacturer_data: Company identifier -> data, as reported by a scanner
    """
    for company_id, data in manufacturer_data.items():
        if is_airpods_advertisement(company_id, data):
            yield bytes(data)


def get_model_id(data: bytes) -> int:
    """Return the 16-bit model identifier (bytes 3-4, big-endian)."""
    return (data[AdvertisementOffset.MODEL_HIGH] << 8) | data[AdvertisementOffset.MODEL_LOW]


def resolve_model_name(model_id: int) -> str:
    """Map a model identifier to a display name, falling back to "AirPods"."""
    return MODEL_NAMES.get(model_id, DEFAULT_MODEL_NAME)


def is_single_unit(data: bytes) -> bool:
    """Check whether the payload comes from an over-ear (single battery) device.

    Only the low nibble of byte 3 decides this, never the model name table,
    so models missing from MODEL_NAMES still get the right topology.
    """
    return low_nibble(data[AdvertisementOffset.MODEL_HIGH]) == SINGLE_UNIT_TOPOLOGY


def is_flipped(data: bytes) -> bool:
    """Check whether left/right fields are swapped (status bit 0x02 clear)."""
    return (data[AdvertisementOffset.STATUS] & FLIP_MASK) == 0


# =============================================================================
# Decoding
# =============================================================================


def _decode_in_ear(data: bytes, model: str, flip: bool) -> InEarStatus:
    pods = data[AdvertisementOffset.POD_BATTERY]
    flags_case = data[AdvertisementOffset.CASE_BATTERY]

    if flip:
        left_raw, right_raw = low_nibble(pods), high_nibble(pods)
    else:
        left_raw, right_raw = high_nibble(pods), low_nibble(pods)

    flags = high_nibble(flags_case)
    if flip:
        left_bit, right_bit = ChargingFlag.SECOND_POD, ChargingFlag.FIRST_POD
    else:
        left_bit, right_bit = ChargingFlag.FIRST_POD, ChargingFlag.SECOND_POD

    return InEarStatus(
        model=model,
        left=decode_battery(left_raw),
        right=decode_battery(right_raw),
        case=decode_battery(low_nibble(flags_case)),
        charging_left=(flags & left_bit) != 0,
        charging_right=(flags & right_bit) != 0,
        charging_case=(flags & ChargingFlag.CASE) != 0,
    )


def _decode_over_ear(data: bytes, model: str) -> OverEarStatus | None:
    battery = decode_battery(low_nibble(data[AdvertisementOffset.POD_BATTERY]))
    if battery is None:
        # A single-channel device reporting "disconnected" is not a status
        return None

    flags = high_nibble(data[AdvertisementOffset.CASE_BATTERY])
    return OverEarStatus(
        model=model,
        battery=battery,
        charging=(flags & ChargingFlag.FIRST_POD) != 0,
    )


def decode(data: bytes) -> Status | None:
    """Decode an AirPods proximity pairing payload.

    Args:
        data: Manufacturer data bytes keyed under APPLE_COMPANY_ID (27 bytes)

    Returns:
        InEarStatus or OverEarStatus, or None if the payload has the wrong
        length or is an over-ear payload with a disconnected battery
    """
    if len(data) != AIRPODS_DATA_LENGTH:
        _LOGGER.debug("Ignoring payload of %d bytes", len(data))
        return None

    model_id = get_model_id(data)
    model = resolve_model_name(model_id)

    if is_single_unit(data):
        status = _decode_over_ear(data, model)
        if status is None:
            _LOGGER.debug("Over-ear payload 0x%04x reports no battery", model_id)
        return status

    return _decode_in_ear(data, model, is_flipped(data))


def decode_advertisement(company_id: int, data: bytes) -> Status | None:
    """Filter and decode one manufacturer data entry.

    Args:
        company_id: 16-bit company identifier
        data: Manufacturer data bytes

    Returns:
        Decoded status, or None if the entry is not an AirPods payload
    """
    if not is_airpods_advertisement(company_id, data):
        return None
    return decode(data)


# =============================================================================
# Rendering
# =============================================================================


def status_to_dict(status: Status) -> dict[str, Any]:
    """Serialize a status to a JSON-ready dict.

    The "type" key is "in_ear" or "over_ear". Batteries that are not
    connected are omitted rather than emitted as null.
    """
    result: dict[str, Any] = {"type": status.kind}
    for f in dataclasses.fields(status):
        value = getattr(status, f.name)
        if value is None:
            continue
        result[f.name] = value
    return result


def format_status(status: Status) -> str:
    """Format a status for display.

    The model name is on the first line, followed by one line per
    connected battery, e.g. "Left: 85% (charging)".
    """
    lines = [status.model]
    for f in dataclasses.fields(status):
        meta = f.metadata
        if not meta.get("channel"):
            continue

        value = getattr(status, f.name)
        if value is None:
            continue

        line = f"{meta['name']}: {value}%"
        if getattr(status, meta["charging"]):
            line += " (charging)"
        lines.append(line)

    return "\n".join(lines)
