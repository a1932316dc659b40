"""
Core package for meter logger Bluetooth scanning
"""
from .adapter_session import AdapterSession, BleakAdapterSession, SessionState
from .config import ScanConfig
from .device_filter import DeviceFilter, Relevant
from .discovery import discover_meters, format_discovery_line
from .scan_loop import ReadingDeduplicator, ScanLoop

__all__ = [
    "AdapterSession",
    "BleakAdapterSession",
    "SessionState",
    "ScanConfig",
    "DeviceFilter",
    "Relevant",
    "discover_meters",
    "format_discovery_line",
    "ReadingDeduplicator",
    "ScanLoop",
]
