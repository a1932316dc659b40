"""
Models package for meter logger
"""
from .sensor_data import (
    AdvertisementEvent,
    DeviceIdentity,
    Reading,
    ReadingFlags,
    SensorDataBase,
    TimestampedReading,
    normalize_address,
)

__all__ = [
    "AdvertisementEvent",
    "DeviceIdentity",
    "Reading",
    "ReadingFlags",
    "SensorDataBase",
    "TimestampedReading",
    "normalize_address",
]
