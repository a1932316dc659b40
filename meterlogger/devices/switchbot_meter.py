"""
SwitchBot Meter / Meter Plus advertisement decoder

Byte layout (OpenWonderLabs "Meter BLE open API"):

    temperature fraction byte   bit 7-6  temperature alert
                                bit 5-4  humidity alert
                                bit 3-0  tenths of a degree (0-9)
    temperature integer byte    bit 7    sign, set when the value is above zero
                                bit 6-0  whole degrees Celsius
    humidity byte               bit 7    display unit, set for Fahrenheit
                                bit 6-0  relative humidity in percent
    battery byte                bit 6-0  battery percent

The service data frame (UUID fd3d) carries a device type byte, the battery
and the three measurement bytes. Newer firmware also puts the measurement
bytes into the primary advertisement as manufacturer data under the
SwitchBot company id, after the device MAC and a sequence counter, but
without the battery.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional

from ..exceptions import DecodeError, DecodeErrorKind
from ..models.sensor_data import Reading, ReadingFlags, TEMPERATURE_MAX, TEMPERATURE_MIN

# Woan Technology (SwitchBot) Bluetooth SIG company identifier
SWITCHBOT_COMPANY_ID = 0x0969

SERVICE_DATA_UUID = "0000fd3d-0000-1000-8000-00805f9b34fb"

DEVICE_TYPE_METER = 0x54  # 'T'
DEVICE_TYPE_METER_PLUS = 0x69  # 'i'
METER_DEVICE_TYPES: FrozenSet[int] = frozenset({DEVICE_TYPE_METER, DEVICE_TYPE_METER_PLUS})

DEVICE_TYPE_MASK = 0x7F
BATTERY_MASK = 0x7F
TEMPERATURE_ALERT_MASK = 0xC0
TEMPERATURE_ALERT_SHIFT = 6
HUMIDITY_ALERT_MASK = 0x30
HUMIDITY_ALERT_SHIFT = 4
TEMPERATURE_TENTHS_MASK = 0x0F
TEMPERATURE_SIGN_BIT = 0x80
TEMPERATURE_INTEGER_MASK = 0x7F
FAHRENHEIT_BIT = 0x80
HUMIDITY_MASK = 0x7F


@dataclass(frozen=True)
class PayloadLayout:
    """Byte offsets of the measurement fields inside one payload format"""
    name: str
    min_length: int
    temperature_fraction_offset: int
    temperature_integer_offset: int
    humidity_offset: int
    battery_offset: Optional[int] = None
    device_type_offset: Optional[int] = None


MANUFACTURER_DATA_LAYOUT = PayloadLayout(
    name="manufacturer_data",
    min_length=11,
    temperature_fraction_offset=8,
    temperature_integer_offset=9,
    humidity_offset=10,
)

SERVICE_DATA_LAYOUT = PayloadLayout(
    name="service_data",
    min_length=6,
    temperature_fraction_offset=3,
    temperature_integer_offset=4,
    humidity_offset=5,
    battery_offset=2,
    device_type_offset=0,
)


def is_meter_service_data(data: bytes) -> bool:
    """Check whether a fd3d service data frame comes from a Meter"""
    return len(data) > 0 and (data[0] & DEVICE_TYPE_MASK) in METER_DEVICE_TYPES


def decode(payload: bytes, layout: PayloadLayout = MANUFACTURER_DATA_LAYOUT) -> Reading:
    """
    Decode an advertisement payload into a Reading

    Args:
        payload: raw payload bytes, company id or service UUID already stripped
        layout: field layout of the payload

    Returns:
        The decoded Reading

    Raises:
        DecodeError: the payload is too short, malformed or out of range
    """
    data = bytes(payload)
    if len(data) < layout.min_length:
        raise DecodeError(
            DecodeErrorKind.TOO_SHORT,
            f"{layout.name} payload has {len(data)} bytes, need at least {layout.min_length}",
        )

    if layout.device_type_offset is not None:
        device_type = data[layout.device_type_offset] & DEVICE_TYPE_MASK
        if device_type not in METER_DEVICE_TYPES:
            raise DecodeError(DecodeErrorKind.MALFORMED, f"Unknown device type 0x{device_type:02x}")

    fraction_byte = data[layout.temperature_fraction_offset]
    integer_byte = data[layout.temperature_integer_offset]
    humidity_byte = data[layout.humidity_offset]

    tenths = fraction_byte & TEMPERATURE_TENTHS_MASK
    if tenths > 9:
        raise DecodeError(DecodeErrorKind.MALFORMED, f"Temperature tenths nibble is {tenths}")

    # Integer tenths, divided once
    magnitude = ((integer_byte & TEMPERATURE_INTEGER_MASK) * 10 + tenths) / 10
    if integer_byte & TEMPERATURE_SIGN_BIT or magnitude == 0:
        temperature = magnitude
    else:
        temperature = -magnitude
    if temperature < TEMPERATURE_MIN or temperature > TEMPERATURE_MAX:
        raise DecodeError(DecodeErrorKind.OUT_OF_RANGE, f"Temperature {temperature}°C out of range")

    humidity = humidity_byte & HUMIDITY_MASK
    if humidity > 100:
        raise DecodeError(DecodeErrorKind.OUT_OF_RANGE, f"Humidity {humidity}% out of range")

    battery = None
    if layout.battery_offset is not None:
        battery = data[layout.battery_offset] & BATTERY_MASK
        if battery > 100:
            raise DecodeError(DecodeErrorKind.OUT_OF_RANGE, f"Battery {battery}% out of range")

    flags = ReadingFlags(
        temperature_alert=(fraction_byte & TEMPERATURE_ALERT_MASK) >> TEMPERATURE_ALERT_SHIFT,
        humidity_alert=(fraction_byte & HUMIDITY_ALERT_MASK) >> HUMIDITY_ALERT_SHIFT,
        fahrenheit=bool(humidity_byte & FAHRENHEIT_BIT),
    )
    return Reading(temperature=temperature, humidity=humidity, battery=battery, flags=flags)
