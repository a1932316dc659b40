"""
Advertisement filtering for SwitchBot meters
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from ..devices.switchbot_meter import (
    MANUFACTURER_DATA_LAYOUT,
    SERVICE_DATA_LAYOUT,
    SERVICE_DATA_UUID,
    SWITCHBOT_COMPANY_ID,
    PayloadLayout,
    is_meter_service_data,
)
from ..models.sensor_data import AdvertisementEvent, DeviceIdentity, normalize_address


@dataclass(frozen=True)
class Relevant:
    """An advertisement worth decoding, with the payload to decode"""
    address: DeviceIdentity
    payload: bytes
    layout: PayloadLayout


class DeviceFilter:
    """Classifies advertisements as meter broadcasts or noise"""

    def __init__(self, allowed_addresses: Optional[Iterable[str]] = None):
        """
        Initialize filter

        Args:
            allowed_addresses: addresses to accept; None or empty accepts any meter
        """
        self.allowed_addresses: FrozenSet[DeviceIdentity] = frozenset(
            normalize_address(address) for address in (allowed_addresses or ())
        )

    def is_allowed(self, address: str) -> bool:
        """Check an address against the allow-list"""
        if not self.allowed_addresses:
            return True
        return normalize_address(address) in self.allowed_addresses

    def classify(self, event: AdvertisementEvent) -> Optional[Relevant]:
        """
        Classify an advertisement

        Args:
            event: advertisement observed by the adapter session

        Returns:
            Relevant with the payload to decode, or None to ignore the event
        """
        if not self.is_allowed(event.address):
            return None

        address = normalize_address(event.address)
        service_data = self._switchbot_service_data(event)

        # Bots, plugs and curtains share the company id; their device type says otherwise
        if service_data is not None and not is_meter_service_data(service_data):
            return None

        payload = event.manufacturer_data.get(SWITCHBOT_COMPANY_ID)
        if payload is not None:
            return Relevant(address, bytes(payload), MANUFACTURER_DATA_LAYOUT)

        # Older firmware only advertises the fd3d service data frame
        if service_data is not None:
            return Relevant(address, service_data, SERVICE_DATA_LAYOUT)

        return None

    @staticmethod
    def _switchbot_service_data(event: AdvertisementEvent) -> Optional[bytes]:
        for uuid, data in event.service_data.items():
            if str(uuid).lower() == SERVICE_DATA_UUID:
                return bytes(data)
        return None
