"""
One-shot discovery of nearby meters
"""
import logging
import time
from typing import Callable, Dict, Optional

from ..devices.switchbot_meter import decode
from ..exceptions import DecodeError
from ..models.sensor_data import DeviceIdentity, Reading
from .adapter_session import AdapterSession
from .device_filter import DeviceFilter

logger = logging.getLogger(__name__)


async def discover_meters(
    session: AdapterSession,
    duration: float = 10.0,
    device_filter: Optional[DeviceFilter] = None,
    poll_interval: float = 0.5,
    monotonic: Callable[[], float] = time.monotonic,
) -> Dict[DeviceIdentity, Reading]:
    """
    Scan for a fixed time and collect the latest reading of every meter seen

    Stops early once every allow-listed address has reported.

    Args:
        session: adapter session to scan with; started and stopped here
        duration: scan time in seconds
        device_filter: filter restricting the devices, any meter when omitted
        poll_interval: upper bound on a single wait for the next advertisement
        monotonic: monotonic time source

    Returns:
        Latest reading per device address

    Raises:
        AdapterConstructionError: the radio could not be acquired
        AdapterFault: the radio was lost during discovery
    """
    device_filter = device_filter or DeviceFilter()
    readings: Dict[DeviceIdentity, Reading] = {}

    logger.info(f"Discovering meters for {duration} seconds...")
    async with session:
        deadline = monotonic() + duration
        while True:
            remaining = deadline - monotonic()
            if remaining <= 0:
                break

            event = await session.next_event(timeout=min(poll_interval, remaining))
            if event is None:
                continue

            relevant = device_filter.classify(event)
            if relevant is None:
                continue
            try:
                reading = decode(relevant.payload, relevant.layout)
            except DecodeError as e:
                logger.debug(f"Ignoring advertisement from {relevant.address}: {e}")
                continue

            if relevant.address not in readings:
                logger.info(f"Found meter {relevant.address}")
            readings[relevant.address] = reading

            if device_filter.allowed_addresses and device_filter.allowed_addresses.issubset(readings):
                break

    logger.info(f"Discovery finished: {len(readings)} meter(s)")
    return readings


def format_discovery_line(address: DeviceIdentity, reading: Reading) -> str:
    """Human readable one-line summary of a discovered meter"""
    line = f"{address}: {reading.temperature:.1f}°C, {reading.humidity}% humidity"
    if reading.battery is not None:
        line += f", {reading.battery}% battery"
    return line
