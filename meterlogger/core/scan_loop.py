"""
Scan loop: advertisements in, timestamped readings out
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Set, Tuple

from ..devices.switchbot_meter import decode
from ..exceptions import AdapterFault, DecodeError, DecodeErrorKind, RetryBudgetExhausted, SinkError
from ..exporters.base import ReadingExporterBase
from ..models.sensor_data import AdvertisementEvent, DeviceIdentity, Reading, TimestampedReading
from .adapter_session import AdapterSession
from .config import ScanConfig
from .device_filter import DeviceFilter

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current local wall-clock time with its UTC offset"""
    return datetime.now().astimezone()


class ReadingDeduplicator:
    """Suppresses repeated broadcasts of an unchanged reading"""

    def __init__(self, min_interval: float):
        """
        Initialize deduplicator

        Args:
            min_interval: seconds an identical reading from one device stays suppressed
        """
        self.min_interval = min_interval
        self._last_emitted: Dict[DeviceIdentity, Tuple[Reading, float]] = {}

    def is_duplicate(self, address: DeviceIdentity, reading: Reading, now: float) -> bool:
        """Check whether emitting `reading` now would repeat the last emission"""
        previous = self._last_emitted.get(address)
        if previous is None:
            return False
        last_reading, emitted_at = previous
        return last_reading == reading and now - emitted_at < self.min_interval

    def record(self, address: DeviceIdentity, reading: Reading, now: float):
        """Remember a successful emission"""
        self._last_emitted[address] = (reading, now)

    def __len__(self) -> int:
        return len(self._last_emitted)


class ScanLoop:
    """
    Pulls advertisements from an adapter session, decodes meter readings and
    hands them to an exporter

    Processing is strictly sequential in arrival order. Adapter faults are
    retried with exponential backoff; decode errors only skip the offending
    advertisement. An export still pending when stop() is called is
    cancelled, so shutdown never waits on a slow sink.
    """

    def __init__(
        self,
        session: AdapterSession,
        exporter: ReadingExporterBase,
        config: Optional[ScanConfig] = None,
        device_filter: Optional[DeviceFilter] = None,
        sink_error_handler: Optional[Callable[[SinkError], None]] = None,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize scan loop

        Args:
            session: adapter session providing advertisements
            exporter: output sink for accepted readings
            config: scan configuration, defaults when omitted
            device_filter: filter to apply, built from config.allowed_addresses when omitted
            sink_error_handler: called with a SinkError instead of raising it
            clock: wall-clock source for capture timestamps
            monotonic: monotonic time source for intervals
        """
        self.session = session
        self.exporter = exporter
        self.config = config or ScanConfig()
        self.device_filter = device_filter or DeviceFilter(self.config.allowed_addresses)
        self.sink_error_handler = sink_error_handler
        self.clock = clock
        self.monotonic = monotonic
        self.deduplicator = ReadingDeduplicator(self.config.min_emit_interval)

        self.emitted = 0
        self.suppressed = 0
        self.decode_errors = 0
        self.failed_recoveries = 0

        self._reported_decode_errors: Set[Tuple[DeviceIdentity, DecodeErrorKind]] = set()
        self._stop_event = asyncio.Event()
        self._last_timestamp: Optional[datetime] = None
        self._last_relevant = self.monotonic()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self):
        """Request the loop to finish the current event and return"""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
        self._stop_event.set()

    async def run(self):
        """
        Scan until stop() is called

        Raises:
            AdapterConstructionError: the radio could not be acquired
            RetryBudgetExhausted: the adapter did not recover in time
            SinkError: the exporter failed and no sink_error_handler is set
        """
        async with self.session:
            self._last_relevant = self.monotonic()
            while not self.stopping:
                try:
                    event = await self.session.next_event(timeout=self.config.poll_interval)
                except AdapterFault as e:
                    await self._recover(e)
                    continue

                if event is None:
                    self._check_idle()
                    continue

                await self.process_event(event)

        logger.info(
            f"Scan loop finished: {self.emitted} emitted, {self.suppressed} suppressed, "
            f"{self.decode_errors} decode errors"
        )

    async def process_event(self, event: AdvertisementEvent) -> Optional[TimestampedReading]:
        """
        Filter, decode, deduplicate and export one advertisement

        Args:
            event: advertisement to process

        Returns:
            The exported record, None when the event produced no output
        """
        relevant = self.device_filter.classify(event)
        if relevant is None:
            return None

        try:
            reading = decode(relevant.payload, relevant.layout)
        except DecodeError as e:
            self.decode_errors += 1
            # Warn once per device and error kind
            key = (relevant.address, e.kind)
            if key in self._reported_decode_errors:
                logger.debug(f"Skipping malformed advertisement from {relevant.address}: {e}")
            else:
                self._reported_decode_errors.add(key)
                logger.warning(f"Skipping malformed advertisement from {relevant.address}: {e}")
            return None

        now = self.monotonic()
        self._last_relevant = now
        if self.deduplicator.is_duplicate(relevant.address, reading, now):
            self.suppressed += 1
            return None

        record = TimestampedReading(
            timestamp=self._next_timestamp(),
            device_address=relevant.address,
            reading=reading,
        )
        if await self._export(record):
            self.deduplicator.record(relevant.address, reading, now)
            self.emitted += 1
            logger.debug(f"Emitted {record}")
            return record
        return None

    def _next_timestamp(self) -> datetime:
        timestamp = self.clock()
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp
        return timestamp

    async def _export(self, record: TimestampedReading) -> bool:
        try:
            result = await self._export_until_stopped(record)
            if result is None:
                return False
            if result:
                return True
            error = SinkError(f"{type(self.exporter).__name__} rejected record from {record.device_address}")
        except SinkError as e:
            error = e

        if self.sink_error_handler is None:
            raise error
        self.sink_error_handler(error)
        return False

    async def _export_until_stopped(self, record: TimestampedReading) -> Optional[bool]:
        """Run the exporter, cancelling it if stop() is called first; None means abandoned"""
        export_task = asyncio.ensure_future(self.exporter.export(record))
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        done = set()
        try:
            done, _ = await asyncio.wait({export_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if export_task not in done:
                export_task.cancel()

        if export_task not in done:
            logger.warning(f"Stop requested, abandoned pending export of record from {record.device_address}")
            return None
        return export_task.result()

    def _check_idle(self):
        idle = self.monotonic() - self._last_relevant
        if idle >= self.config.idle_timeout:
            logger.info(f"No meter readings received for {idle:.0f}s, still scanning")
            self._last_relevant = self.monotonic()

    async def _recover(self, fault: AdapterFault):
        """
        Back off and restart the session until it scans again or the budget runs out

        Only failed restarts count against max_retries; a successful restart
        clears the count.
        """
        while not self.stopping:
            if self.failed_recoveries >= self.config.max_retries:
                logger.error(
                    f"Giving up after {self.failed_recoveries} failed recovery attempt(s): {fault}"
                )
                raise RetryBudgetExhausted(self.failed_recoveries, fault) from fault

            delay = self.config.backoff_delay(self.failed_recoveries)
            logger.warning(
                f"Adapter fault: {fault}. Retry {self.failed_recoveries + 1}/{self.config.max_retries} "
                f"in {delay:.1f}s"
            )
            if await self._wait_for_stop(delay):
                return

            try:
                await self.session.start()
            except AdapterFault as e:
                self.failed_recoveries += 1
                fault = e
                continue

            self.failed_recoveries = 0
            logger.info("Scanning resumed")
            return

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep for `delay` seconds, returning True early if stop() is called"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
