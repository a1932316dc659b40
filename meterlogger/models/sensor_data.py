"""
Sensor data models for meter logging
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Mapping, Optional

DeviceIdentity = str

TEMPERATURE_MIN = -40.0
TEMPERATURE_MAX = 85.0


def normalize_address(address: str) -> DeviceIdentity:
    """Return the canonical form of a BLE address used as a lookup key"""
    return address.strip().upper()


@dataclass(frozen=True)
class AdvertisementEvent:
    """One broadcast observed by the radio"""
    address: str
    rssi: Optional[int] = None
    manufacturer_data: Mapping[int, bytes] = field(default_factory=dict)
    service_data: Mapping[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class ReadingFlags:
    """Status bits carried next to the measurement"""
    temperature_alert: int = 0
    humidity_alert: int = 0
    fahrenheit: bool = False

    def to_dict(self) -> dict:
        return {
            "temperature_alert": self.temperature_alert,
            "humidity_alert": self.humidity_alert,
            "fahrenheit": self.fahrenheit,
        }


@dataclass(frozen=True)
class Reading:
    """Decoded temperature/humidity measurement"""
    temperature: float
    humidity: int
    battery: Optional[int] = None
    flags: ReadingFlags = field(default_factory=ReadingFlags)

    def __post_init__(self):
        """Validate reading data after initialization"""
        if self.temperature < TEMPERATURE_MIN or self.temperature > TEMPERATURE_MAX:
            raise ValueError(
                f"Temperature out of reasonable range ({TEMPERATURE_MIN}°C to {TEMPERATURE_MAX}°C)"
            )
        if self.humidity < 0 or self.humidity > 100:
            raise ValueError("Humidity must be between 0 and 100")
        if self.battery is not None and (self.battery < 0 or self.battery > 100):
            raise ValueError("Battery must be between 0 and 100")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "battery": self.battery,
            "flags": self.flags.to_dict(),
        }

    def __str__(self) -> str:
        text = f"Temp: {self.temperature:.1f}°C, Humidity: {self.humidity}%"
        if self.battery is not None:
            text += f", Battery: {self.battery}%"
        return text


@dataclass
class SensorDataBase:
    """Base class for all sensor data"""
    timestamp: datetime
    device_address: str

    def __post_init__(self):
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("Timestamp must carry a UTC offset")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "device_address": self.device_address,
        }


@dataclass
class TimestampedReading(SensorDataBase):
    """A Reading paired with the instant it was captured"""
    reading: Reading

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        result = super().to_dict()
        result.update(self.reading.to_dict())
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> "TimestampedReading":
        """Create instance from dictionary"""
        flags = ReadingFlags(**data.get("flags", {}))
        reading = Reading(
            temperature=data["temperature"],
            humidity=data["humidity"],
            battery=data.get("battery"),
            flags=flags,
        )
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            device_address=data["device_address"],
            reading=reading,
        )

    def __str__(self) -> str:
        return f"{self.reading} at {self.timestamp.strftime('%H:%M:%S')} ({self.device_address})"
