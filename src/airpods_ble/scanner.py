"""AirPods scanner - Poll an advertisement source until AirPods show up.

Example:
    from airpods_ble import AirPodsScanner
    from airpods_ble.connect import BleakSource

    scanner = AirPodsScanner(BleakSource(), timeout=3.0)
    status = await scanner.find_status()
    if status:
        print(format_status(status))
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .protocol import Status, candidate_payloads, decode

if TYPE_CHECKING:
    from .connect import AdvertisementSource

_LOGGER = logging.getLogger(__name__)


class AirPodsScanner:
    """Find the first AirPods advertisement that decodes to a status.

    The scanner owns the source's scan lifecycle: it starts the scan,
    polls the discovered peripherals every ``interval`` seconds and always
    stops the scan before returning, whether a device was found, the
    timeout elapsed or an error was raised.

    If several AirPods are in range, the first one in the source's
    enumeration order wins.

    Args:
        source: Advertisement source (e.g. BleakSource, ESPHomeProxySource)
        timeout: Maximum scan duration in seconds
        interval: Delay between polls in seconds
    """

    def __init__(
        self,
        source: "AdvertisementSource",
        timeout: float = 3.0,
        interval: float = 0.5,
    ) -> None:
        if timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {timeout}")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._source = source
        self._timeout = timeout
        self._interval = interval
        self._last_status: Status | None = None

    def _poll(self) -> Status | None:
        """Decode the current observations, returning the first match."""
        for manufacturer_data in self._source.observed_manufacturer_data():
            for payload in candidate_payloads(manufacturer_data):
                status = decode(payload)
                if status is not None:
                    return status
                _LOGGER.debug("Undecodable AirPods payload: %s", payload.hex())
        return None

    async def find_status(self) -> Status | None:
        """Scan until a status is decoded or the timeout elapses.

        Returns:
            Decoded status, or None if no AirPods were seen in time

        Raises:
            AirPodsScanError: If the source fails to start, poll or stop
        """
        await self._source.start()
        try:
            status = await self._poll_until_deadline()
        except BaseException:
            # Keep the original error; the radio still has to be released
            try:
                await self._source.stop()
            except Exception:
                _LOGGER.warning("Failed to stop scan after error", exc_info=True)
            raise

        await self._source.stop()
        if status is not None:
            self._last_status = status
        return status

    async def _poll_until_deadline(self) -> Status | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout

        while True:
            status = self._poll()
            if status is not None:
                _LOGGER.info("Found %s", status.model)
                return status

            remaining = deadline - loop.time()
            if remaining <= 0:
                _LOGGER.debug("No AirPods found within %.1fs", self._timeout)
                return None
            await asyncio.sleep(min(self._interval, remaining))

    @property
    def last_status(self) -> Status | None:
        """Most recent status returned by find_status()."""
        return self._last_status
