"""
Device-specific payload decoders
"""
from .switchbot_meter import (
    MANUFACTURER_DATA_LAYOUT,
    SERVICE_DATA_LAYOUT,
    SERVICE_DATA_UUID,
    SWITCHBOT_COMPANY_ID,
    PayloadLayout,
    decode,
)

__all__ = [
    "MANUFACTURER_DATA_LAYOUT",
    "SERVICE_DATA_LAYOUT",
    "SERVICE_DATA_UUID",
    "SWITCHBOT_COMPANY_ID",
    "PayloadLayout",
    "decode",
]
