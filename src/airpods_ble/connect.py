"""Advertisement sources for AirPods scanning.

A source starts and stops a BLE scan and reports the manufacturer data
seen so far for every peripheral. Two sources are provided:

- BleakSource: the local Bluetooth adapter, through bleak
- ESPHomeProxySource: an ESPHome device with bluetooth_proxy enabled

Example:
    from airpods_ble.connect import scan_direct

    status = await scan_direct(timeout=3.0)
    if status:
        print(status.model)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from bleak import BleakScanner
from bleak.exc import BleakBluetoothNotAvailableError, BleakError

from .scanner import AirPodsScanner

if TYPE_CHECKING:
    from .protocol import Status

_LOGGER = logging.getLogger(__name__)


class AirPodsScanError(Exception):
    """Scanning failed for a reason outside of decoding."""


class AdapterNotFoundError(AirPodsScanError):
    """No usable Bluetooth adapter is available."""


class ScanInProgressError(AirPodsScanError):
    """The platform refused to start a scan because one is already running."""

    def __init__(self, detail: str = "") -> None:
        message = (
            "A Bluetooth scan is already in progress on this adapter. "
            "Stop the other scan (e.g. `bluetoothctl scan off` or another "
            "running airpods-ble) and try again."
        )
        if detail:
            message += f" ({detail})"
        super().__init__(message)


def _translate_bleak_error(err: BleakError) -> AirPodsScanError:
    """Map a bleak error raised while starting a scan to our taxonomy."""
    text = str(err)
    if "InProgress" in text or "in progress" in text.lower():
        return ScanInProgressError(text)
    if "adapter" in text.lower() and ("not found" in text.lower() or "no " in text.lower()):
        return AdapterNotFoundError(text)
    return AirPodsScanError(f"Failed to start scan: {text}")


class AdvertisementSource(Protocol):
    """Anything that can scan and report manufacturer data per peripheral."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def observed_manufacturer_data(self) -> list[Mapping[int, bytes]]: ...


class BleakSource:
    """Scan with the local Bluetooth adapter.

    Args:
        adapter: Adapter name on Linux (e.g. "hci1"). None uses bleak's default.
    """

    def __init__(self, adapter: str | None = None) -> None:
        self._adapter = adapter
        self._scanner: BleakScanner | None = None

    async def start(self) -> None:
        kwargs: dict[str, Any] = {}
        if self._adapter:
            kwargs["adapter"] = self._adapter

        scanner = BleakScanner(**kwargs)
        try:
            await scanner.start()
        except BleakBluetoothNotAvailableError as err:
            raise AdapterNotFoundError(f"Bluetooth is not available: {err}") from err
        except BleakError as err:
            raise _translate_bleak_error(err) from err
        self._scanner = scanner

    async def stop(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except BleakError as err:
            raise AirPodsScanError(f"Failed to stop scan: {err}") from err

    def observed_manufacturer_data(self) -> list[Mapping[int, bytes]]:
        if self._scanner is None:
            return []
        devices = self._scanner.discovered_devices_and_advertisement_data
        return [adv.manufacturer_data for _, adv in devices.values()]


class ESPHomeProxySource:
    """Scan through an ESPHome BLE proxy.

    Use this when the AirPods are out of range of the local machine
    but within range of an ESPHome device with bluetooth_proxy enabled.

    Requires optional dependencies: pip install airpods-ble[proxy]

    Args:
        proxy_host: ESPHome device hostname or IP address
        api_key: ESPHome API encryption key (noise_psk)
        proxy_port: ESPHome API port (default: 6053)
    """

    def __init__(self, proxy_host: str, api_key: str, proxy_port: int = 6053) -> None:
        self._proxy_host = proxy_host
        self._api_key = api_key
        self._proxy_port = proxy_port
        self._api_client: Any = None
        self._scanner: Any = None

    async def start(self) -> None:
        # Import here to make proxy dependencies optional
        try:
            from aioesphomeapi import APIClient, APIConnectionError
            from bleak_esphome import connect_scanner
            import habluetooth
        except ImportError as err:
            raise AirPodsScanError(
                f"ESPHome proxy support is not installed ({err.name}). "
                "Install it with: pip install airpods-ble[proxy]"
            ) from err

        # Initialize habluetooth manager (required for bleak-esphome)
        manager = habluetooth.BluetoothManager()
        habluetooth.set_manager(manager)

        api_client = APIClient(self._proxy_host, self._proxy_port, None, noise_psk=self._api_key)
        try:
            await api_client.connect(login=True)
        except APIConnectionError as err:
            raise AirPodsScanError(
                f"Cannot connect to ESPHome proxy {self._proxy_host}:{self._proxy_port}: {err}"
            ) from err
        self._api_client = api_client

        try:
            info = await api_client.device_info()
            if not info.bluetooth_proxy_feature_flags:
                raise AdapterNotFoundError(
                    f"ESPHome device {self._proxy_host} does not have bluetooth_proxy enabled"
                )
            client_data = connect_scanner(api_client, info, available=True)
            scanner = client_data.scanner
            scanner.async_setup()
        except APIConnectionError as err:
            await self.stop()
            raise AirPodsScanError(f"ESPHome proxy error: {err}") from err
        except BaseException:
            # Includes cancellation: the API connection must not outlive a failed start
            await self.stop()
            raise
        self._scanner = scanner

    async def stop(self) -> None:
        api_client, self._api_client = self._api_client, None
        self._scanner = None
        if api_client is not None:
            await api_client.disconnect()

    def observed_manufacturer_data(self) -> list[Mapping[int, bytes]]:
        if self._scanner is None:
            return []
        devices = self._scanner.discovered_devices_and_advertisement_data
        return [adv.manufacturer_data for _, adv in devices.values()]


async def scan_direct(
    timeout: float = 3.0,
    interval: float = 0.5,
    adapter: str | None = None,
) -> "Status | None":
    """Scan for AirPods using local Bluetooth.

    Args:
        timeout: Maximum scan duration in seconds
        interval: Delay between polls of the discovered devices
        adapter: Adapter name on Linux (e.g. "hci1")

    Returns:
        First decoded status, or None if nothing was found in time

    Raises:
        AdapterNotFoundError: If Bluetooth is unavailable
        ScanInProgressError: If another scan is already running
    """
    scanner = AirPodsScanner(BleakSource(adapter), timeout=timeout, interval=interval)
    return await scanner.find_status()


async def scan_via_proxy(
    proxy_host: str,
    api_key: str,
    proxy_port: int = 6053,
    timeout: float = 10.0,
    interval: float = 0.5,
) -> "Status | None":
    """Scan for AirPods through an ESPHome BLE proxy.

    Requires optional dependencies: pip install airpods-ble[proxy]

    Args:
        proxy_host: ESPHome device hostname or IP
        api_key: ESPHome API encryption key
        proxy_port: ESPHome API port
        timeout: Maximum scan duration in seconds
        interval: Delay between polls of the discovered devices

    Returns:
        First decoded status, or None if nothing was found in time
    """
    source = ESPHomeProxySource(proxy_host, api_key, proxy_port)
    scanner = AirPodsScanner(source, timeout=timeout, interval=interval)
    return await scanner.find_status()
