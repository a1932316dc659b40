"""
SwitchBot Meter Plus Bluetooth advertisement logger
"""
from .models.sensor_data import AdvertisementEvent, Reading, ReadingFlags, TimestampedReading
from .devices.switchbot_meter import decode
from .core.adapter_session import AdapterSession, BleakAdapterSession, SessionState
from .core.config import ScanConfig
from .core.device_filter import DeviceFilter
from .core.scan_loop import ScanLoop
from .exceptions import (
    AdapterConstructionError,
    AdapterFault,
    DecodeError,
    DecodeErrorKind,
    RetryBudgetExhausted,
    SinkError,
)
from .exporters.base import MultiExporter, ReadingExporterBase
from .exporters.tsv import TsvExporter, TsvFileExporter
from .exporters.json_file import JsonFileExporter, JsonLinesExporter
from .exporters.http_sender import HttpSender

__version__ = "0.1.0"
__all__ = [
    "AdvertisementEvent",
    "Reading",
    "ReadingFlags",
    "TimestampedReading",
    "decode",
    "AdapterSession",
    "BleakAdapterSession",
    "SessionState",
    "ScanConfig",
    "DeviceFilter",
    "ScanLoop",
    "AdapterConstructionError",
    "AdapterFault",
    "DecodeError",
    "DecodeErrorKind",
    "RetryBudgetExhausted",
    "SinkError",
    "ReadingExporterBase",
    "MultiExporter",
    "TsvExporter",
    "TsvFileExporter",
    "JsonFileExporter",
    "JsonLinesExporter",
    "HttpSender",
]
