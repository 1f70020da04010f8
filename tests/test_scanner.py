import pytest

from airpods_ble.connect import AirPodsScanError
from airpods_ble.protocol import APPLE_COMPANY_ID, InEarStatus, OverEarStatus
from airpods_ble.scanner import AirPodsScanner


def _payload(model: int = 0x0E, pods: int = 0x8A, flags_case: int = 0x3F) -> bytes:
    data = bytearray(27)
    data[0:3] = b"\x07\x19\x01"
    data[3] = model
    data[4] = 0x20
    data[5] = 0x02
    data[6] = pods
    data[7] = flags_case
    return bytes(data)


class _FakeSource:
    """Advertisement source replaying one snapshot per poll.

    The last snapshot repeats once the list is exhausted.
    """

    def __init__(self, snapshots, fail_on_poll: Exception | None = None, fail_on_stop: bool = False):
        self._snapshots = list(snapshots)
        self._fail_on_poll = fail_on_poll
        self._fail_on_stop = fail_on_stop
        self.polls = 0
        self.started = 0
        self.stopped = 0

    async def start(self):
        self.started += 1

    async def stop(self):
        self.stopped += 1
        if self._fail_on_stop:
            raise AirPodsScanError("stop failed")

    def observed_manufacturer_data(self):
        self.polls += 1
        if self._fail_on_poll:
            raise self._fail_on_poll
        if len(self._snapshots) > 1:
            return self._snapshots.pop(0)
        return self._snapshots[0] if self._snapshots else []


class TestFindStatus:
    """Tests for the polling loop."""

    @pytest.mark.asyncio
    async def test_found_on_first_poll(self):
        source = _FakeSource([[{APPLE_COMPANY_ID: _payload()}]])
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        status = await scanner.find_status()

        assert isinstance(status, InEarStatus)
        assert status.left == 85
        assert source.started == 1
        assert source.stopped == 1
        assert source.polls == 1
        assert scanner.last_status == status

    @pytest.mark.asyncio
    async def test_found_on_later_poll(self):
        source = _FakeSource([
            [],
            [{0x0006: b"\x01\x09"}],
            [{APPLE_COMPANY_ID: _payload(model=0x0A, pods=0x07, flags_case=0x10)}],
        ])
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        status = await scanner.find_status()

        assert status == OverEarStatus(model="AirPods Max", battery=75, charging=True)
        assert source.polls == 3
        assert source.stopped == 1

    @pytest.mark.asyncio
    async def test_timeout_stops_scan(self):
        source = _FakeSource([[{0x0006: b"\x01\x09"}]])
        scanner = AirPodsScanner(source, timeout=0.05, interval=0.01)

        assert await scanner.find_status() is None
        assert source.stopped == 1
        assert source.polls >= 2
        assert scanner.last_status is None

    @pytest.mark.asyncio
    async def test_zero_timeout_polls_once(self):
        source = _FakeSource([[]])
        scanner = AirPodsScanner(source, timeout=0, interval=0.01)

        assert await scanner.find_status() is None
        assert source.polls == 1
        assert source.stopped == 1

    @pytest.mark.asyncio
    async def test_skips_non_candidates(self):
        """Wrong length, foreign vendor and dead over-ear payloads are passed over."""
        source = _FakeSource([[
            {APPLE_COMPANY_ID: bytes(23)},
            {0x0075: _payload()},
            {APPLE_COMPANY_ID: _payload(model=0x0A, pods=0x0F)},
            {APPLE_COMPANY_ID: _payload(pods=0x55, flags_case=0x04)},
        ]])
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        status = await scanner.find_status()

        assert status == InEarStatus(model="AirPods Pro", left=55, right=55, case=45)

    @pytest.mark.asyncio
    async def test_first_device_wins(self):
        source = _FakeSource([[
            {APPLE_COMPANY_ID: _payload(model=0x0F)},
            {APPLE_COMPANY_ID: _payload(model=0x0E)},
        ]])
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        status = await scanner.find_status()

        assert status.model == "AirPods 2"


class TestErrors:
    """Tests for scan lifecycle on failures."""

    @pytest.mark.asyncio
    async def test_poll_error_stops_scan(self):
        source = _FakeSource([], fail_on_poll=AirPodsScanError("transport failure"))
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        with pytest.raises(AirPodsScanError, match="transport failure"):
            await scanner.find_status()
        assert source.stopped == 1

    @pytest.mark.asyncio
    async def test_stop_error_does_not_mask_poll_error(self):
        source = _FakeSource(
            [], fail_on_poll=AirPodsScanError("transport failure"), fail_on_stop=True
        )
        scanner = AirPodsScanner(source, timeout=1.0, interval=0.01)

        with pytest.raises(AirPodsScanError, match="transport failure"):
            await scanner.find_status()

    @pytest.mark.asyncio
    async def test_stop_error_after_timeout_propagates(self):
        source = _FakeSource([[]], fail_on_stop=True)
        scanner = AirPodsScanner(source, timeout=0, interval=0.01)

        with pytest.raises(AirPodsScanError, match="stop failed"):
            await scanner.find_status()

    def test_invalid_arguments(self):
        with pytest.raises(ValueError, match="timeout"):
            AirPodsScanner(_FakeSource([]), timeout=-1)
        with pytest.raises(ValueError, match="interval"):
            AirPodsScanner(_FakeSource([]), interval=0)
