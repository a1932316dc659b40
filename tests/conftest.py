"""
Shared fakes for meter logger tests
"""
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from meterlogger.core.adapter_session import AdapterSession, SessionState
from meterlogger.exporters.base import ReadingExporterBase, as_record_list
from meterlogger.models.sensor_data import AdvertisementEvent

SWITCHBOT_COMPANY_ID = 0x0969
METER_ADDRESS = "AA:BB:CC:DD:EE:FF"


def manufacturer_payload(fraction: int, integer: int, humidity: int) -> bytes:
    """Manufacturer data frame: MAC, sequence, status, then the three measurement bytes"""
    return bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF, 0x07, 0x64, fraction, integer, humidity])


class ScriptedAdapterSession(AdapterSession):
    """Adapter session replaying a script of advertisements and faults"""

    def __init__(self, script=(), start_errors=(), queue_size: int = 256):
        super().__init__(queue_size=queue_size)
        self.script = deque(script)
        self.start_errors = deque(start_errors)
        self.start_calls = 0
        self.stop_calls = 0
        self.on_exhausted: Optional[Callable[[], None]] = None

    async def _start_scan(self):
        # start_errors holds one entry per start() call, None meaning success
        self.start_calls += 1
        error = self.start_errors.popleft() if self.start_errors else None
        if error is not None:
            raise error

    async def _stop_scan(self):
        self.stop_calls += 1

    async def next_event(self, timeout=None):
        if self.state is SessionState.SCANNING:
            if self.script:
                item = self.script.popleft()
                if isinstance(item, BaseException):
                    self.report_fault(item)
                else:
                    self._publish(item)
            elif self.on_exhausted is not None:
                self.on_exhausted()
        return await super().next_event(timeout)


class RecordingExporter(ReadingExporterBase):
    """Exporter keeping every accepted record; `results` scripts the outcome of each call"""

    def __init__(self, results=()):
        self.records = []
        self.calls = 0
        self.results = deque(results)

    async def export(self, data) -> bool:
        self.calls += 1
        outcome = self.results.popleft() if self.results else True
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome:
            self.records.extend(as_record_list(data))
        return outcome


@pytest.fixture
def make_event():
    """Factory for meter advertisements (defaults: +21.5°C, 75%)"""
    def factory(address=METER_ADDRESS, fraction=0x05, integer=0x95, humidity=0x4B, rssi=-60):
        return AdvertisementEvent(
            address=address,
            rssi=rssi,
            manufacturer_data={SWITCHBOT_COMPANY_ID: manufacturer_payload(fraction, integer, humidity)},
        )
    return factory


@pytest.fixture
def scripted_session():
    return ScriptedAdapterSession


@pytest.fixture
def recording_exporter():
    return RecordingExporter


@pytest.fixture
def fixed_clock():
    """Wall clock frozen at 2024-03-01 08:00:00 UTC"""
    return lambda: datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class FakeMonotonic:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_monotonic():
    return FakeMonotonic()
