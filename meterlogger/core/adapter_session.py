"""
BLE adapter session: owns the radio while scanning for advertisements
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from bleak import BleakScanner
from bleak.assigned_numbers import AdvertisementDataType
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from ..devices.switchbot_meter import SWITCHBOT_COMPANY_ID
from ..exceptions import AdapterConstructionError, AdapterFault
from ..models.sensor_data import AdvertisementEvent

logger = logging.getLogger(__name__)

# BlueZ only forwards advertisements matching one of these in passive mode
PASSIVE_OR_PATTERNS = [
    (0, AdvertisementDataType.MANUFACTURER_SPECIFIC_DATA, SWITCHBOT_COMPANY_ID.to_bytes(2, "little")),
    (0, AdvertisementDataType.SERVICE_DATA_UUID16, bytes([0x3D, 0xFD])),
]


class SessionState(Enum):
    """Lifecycle of an adapter session"""
    UNINITIALIZED = "uninitialized"
    SCANNING = "scanning"
    SUSPENDED = "suspended"
    STOPPED = "stopped"


class AdapterSession(ABC):
    """
    Owns one radio handle and turns its broadcasts into AdvertisementEvents

    Subclasses acquire and release the radio in _start_scan/_stop_scan and
    feed received broadcasts to _publish. Transport loss is reported through
    report_fault (or noticed by _detect_fault) and surfaces as AdapterFault
    from next_event, leaving the session SUSPENDED until start() is called
    again.
    """

    def __init__(self, queue_size: int = 256):
        """
        Initialize session

        Args:
            queue_size: advertisements buffered between radio and consumer
        """
        self.state = SessionState.UNINITIALIZED
        self.dropped_events = 0
        self.last_fault: Optional[BaseException] = None
        self._fault: Optional[AdapterFault] = None
        self._events: "asyncio.Queue[Optional[AdvertisementEvent]]" = asyncio.Queue(maxsize=queue_size)

    @abstractmethod
    async def _start_scan(self):
        """Acquire the radio and enable scanning, raising AdapterFault on failure"""

    @abstractmethod
    async def _stop_scan(self):
        """Disable scanning and release the radio, raising AdapterFault on failure"""

    def _detect_fault(self) -> Optional[AdapterFault]:
        """Return a fault when the transport is known to be dead"""
        return None

    @property
    def is_alive(self) -> bool:
        """Check if the session is scanning with a healthy transport"""
        return (
            self.state is SessionState.SCANNING
            and self._fault is None
            and self._detect_fault() is None
        )

    async def start(self):
        """
        Enter the scanning state

        Raises:
            AdapterConstructionError: the radio could not be acquired on first start
            AdapterFault: a suspended session could not resume
            RuntimeError: the session was already stopped
        """
        if self.state is SessionState.SCANNING:
            return
        if self.state is SessionState.STOPPED:
            raise RuntimeError("Adapter session already stopped")

        first_start = self.state is SessionState.UNINITIALIZED
        try:
            await self._start_scan()
        except AdapterFault as e:
            self.last_fault = e
            if first_start:
                self.state = SessionState.STOPPED
                raise AdapterConstructionError(str(e)) from e
            self.state = SessionState.SUSPENDED
            raise

        self._fault = None
        self.state = SessionState.SCANNING
        logger.debug("Adapter session scanning" if first_start else "Adapter session resumed")

    async def stop(self):
        """Release the radio; safe to call from every exit path"""
        if self.state is SessionState.STOPPED:
            return

        previous = self.state
        self.state = SessionState.STOPPED
        if previous is SessionState.SCANNING:
            try:
                await self._stop_scan()
            except AdapterFault as e:
                logger.warning(f"Error while stopping scan: {e}")
        logger.debug("Adapter session stopped")

    def report_fault(self, error: BaseException):
        """Mark the transport as lost; the next next_event() call raises"""
        if self.state is not SessionState.SCANNING:
            return

        if isinstance(error, AdapterFault):
            fault = error
        else:
            fault = AdapterFault(str(error) or type(error).__name__)
            fault.__cause__ = error
        self._fault = fault

        # Wake a consumer blocked on an empty queue
        if self._events.empty():
            self._events.put_nowait(None)

    def _publish(self, event: AdvertisementEvent):
        """Queue an advertisement for the consumer"""
        if self.state is not SessionState.SCANNING:
            return
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_events += 1
            logger.debug(f"Event queue full, dropped advertisement from {event.address}")

    async def next_event(self, timeout: Optional[float] = None) -> Optional[AdvertisementEvent]:
        """
        Wait for the next advertisement

        Args:
            timeout: seconds to wait, None waits indefinitely

        Returns:
            The next event in arrival order, or None when the timeout passed quietly

        Raises:
            AdapterFault: the transport was lost and the session is now suspended
        """
        if self.state is SessionState.SUSPENDED:
            raise AdapterFault("Adapter session is suspended")
        if self.state is not SessionState.SCANNING:
            raise RuntimeError(f"Adapter session is {self.state.value}")

        if self._events.empty():
            await self._raise_if_faulted()

        try:
            event = await asyncio.wait_for(self._events.get(), timeout=timeout)
        except asyncio.TimeoutError:
            event = None

        if event is None:
            await self._raise_if_faulted()
        return event

    async def _raise_if_faulted(self):
        fault = self._fault or self._detect_fault()
        if fault is None:
            return

        self._fault = None
        self.last_fault = fault
        self.state = SessionState.SUSPENDED
        try:
            await self._stop_scan()
        except AdapterFault as e:
            logger.debug(f"Stopping scan after fault failed: {e}")
        raise fault

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()


class BleakAdapterSession(AdapterSession):
    """Adapter session backed by bleak's BleakScanner"""

    def __init__(
        self,
        adapter: Optional[str] = None,
        scanning_mode: str = "passive",
        stall_timeout: Optional[float] = None,
        queue_size: int = 256,
    ):
        """
        Initialize bleak session

        Args:
            adapter: BlueZ adapter name (e.g. "hci0"), None for the default adapter
            scanning_mode: "passive" or "active"
            stall_timeout: seconds without any advertisement before reporting a fault,
                None disables the watchdog
            queue_size: advertisements buffered between radio and consumer
        """
        super().__init__(queue_size=queue_size)
        self.adapter = adapter
        self.scanning_mode = scanning_mode
        self.stall_timeout = stall_timeout
        self._scanner: Optional[BleakScanner] = None
        self._last_seen = time.monotonic()

    def _scanner_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"scanning_mode": self.scanning_mode}
        if self.adapter:
            kwargs["adapter"] = self.adapter
        if self.scanning_mode == "passive":
            kwargs["bluez"] = {"or_patterns": PASSIVE_OR_PATTERNS}
        return kwargs

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        """Convert a bleak detection into an AdvertisementEvent"""
        self._last_seen = time.monotonic()
        self._publish(AdvertisementEvent(
            address=device.address,
            rssi=advertisement_data.rssi,
            manufacturer_data=dict(advertisement_data.manufacturer_data or {}),
            service_data=dict(advertisement_data.service_data or {}),
        ))

    async def _start_scan(self):
        try:
            self._scanner = BleakScanner(
                detection_callback=self._detection_callback,
                **self._scanner_kwargs()
            )
            await self._scanner.start()
        except (BleakError, OSError) as e:
            self._scanner = None
            raise AdapterFault(f"Failed to start {self.scanning_mode} scan: {e}") from e

        self._last_seen = time.monotonic()
        logger.info(f"BLE {self.scanning_mode} scan running (adapter: {self.adapter or 'default'})")

    async def _stop_scan(self):
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except (BleakError, OSError) as e:
            raise AdapterFault(f"Failed to stop scan: {e}") from e
        logger.info("BLE scan stopped")

    def _detect_fault(self) -> Optional[AdapterFault]:
        if self.stall_timeout is None or self._scanner is None:
            return None
        idle = time.monotonic() - self._last_seen
        if idle >= self.stall_timeout:
            return AdapterFault(f"No advertisements received for {idle:.1f}s")
        return None
