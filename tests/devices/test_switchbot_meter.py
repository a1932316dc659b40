"""
SwitchBot Meter advertisement decoder tests
"""
import random

import pytest

from meterlogger.devices.switchbot_meter import (
    MANUFACTURER_DATA_LAYOUT,
    SERVICE_DATA_LAYOUT,
    decode,
    is_meter_service_data,
)
from meterlogger.exceptions import DecodeError, DecodeErrorKind
from meterlogger.models.sensor_data import Reading, ReadingFlags


def encode_reading(temperature, humidity, battery=100, layout=MANUFACTURER_DATA_LAYOUT,
                   temperature_alert=0, humidity_alert=0, fahrenheit=False) -> bytes:
    """Test-only encoder mirroring the Meter byte layout"""
    integer, tenths = divmod(round(abs(temperature) * 10), 10)
    fraction_byte = (temperature_alert << 6) | (humidity_alert << 4) | tenths
    integer_byte = integer | (0x80 if temperature >= 0 else 0)
    humidity_byte = humidity | (0x80 if fahrenheit else 0)

    if layout is SERVICE_DATA_LAYOUT:
        return bytes([0x69, 0x00, battery, fraction_byte, integer_byte, humidity_byte])
    return bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF, 0x07, 0x64,
                  fraction_byte, integer_byte, humidity_byte])


class TestServiceDataDecoding:
    """fd3d service data frame decoding"""

    def test_decodes_known_frame(self):
        """Frame captured from a Meter Plus"""
        reading = decode(bytes([105, 0, 228, 9, 152, 40]), SERVICE_DATA_LAYOUT)

        assert reading == Reading(temperature=24.9, humidity=40, battery=100)

    def test_battery_boundary_accepted(self):
        reading = decode(bytes([0x69, 0x00, 100, 0x05, 0x95, 0x4B]), SERVICE_DATA_LAYOUT)

        assert reading.battery == 100

    def test_battery_above_100_rejected(self):
        with pytest.raises(DecodeError) as exc_info:
            decode(bytes([0x69, 0x00, 101, 0x05, 0x95, 0x4B]), SERVICE_DATA_LAYOUT)

        assert exc_info.value.kind is DecodeErrorKind.OUT_OF_RANGE

    def test_battery_ignores_top_bit(self):
        reading = decode(bytes([0x69, 0x00, 0x80 | 55, 0x05, 0x95, 0x4B]), SERVICE_DATA_LAYOUT)

        assert reading.battery == 55

    def test_plain_meter_device_type_accepted(self):
        reading = decode(bytes([0x54, 0x00, 80, 0x00, 0x94, 50]), SERVICE_DATA_LAYOUT)

        assert reading.temperature == 20.0

    def test_unknown_device_type_is_malformed(self):
        with pytest.raises(DecodeError) as exc_info:
            decode(bytes([0x48, 0x00, 80, 0x00, 0x94, 50]), SERVICE_DATA_LAYOUT)

        assert exc_info.value.kind is DecodeErrorKind.MALFORMED

    def test_is_meter_service_data(self):
        assert is_meter_service_data(bytes([0x69, 0x00])) is True
        assert is_meter_service_data(bytes([0x80 | 0x54])) is True
        assert is_meter_service_data(bytes([0x48, 0x00])) is False
        assert is_meter_service_data(b"") is False


class TestManufacturerDataDecoding:
    """0x0969 manufacturer data decoding"""

    def test_decodes_example_payload(self):
        """Humidity byte 0x4B and +21.5°C"""
        payload = bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF, 0x07, 0x64, 0x05, 0x95, 0x4B])

        reading = decode(payload)

        assert reading.temperature == 21.5
        assert reading.humidity == 75
        assert reading.battery is None
        assert reading.flags == ReadingFlags()

    def test_negative_temperature(self):
        """Sign bit cleared means below zero"""
        payload = encode_reading(-12.3, 60)

        assert payload[9] & 0x80 == 0
        assert decode(payload).temperature == -12.3

    def test_zero_with_cleared_sign_bit_is_not_negative(self):
        payload = bytes([0] * 8 + [0x00, 0x00, 50])

        reading = decode(payload)

        assert reading.temperature == 0.0
        assert str(reading.temperature) == "0.0"

    def test_flags_are_exposed(self):
        payload = encode_reading(22.0, 45, temperature_alert=2, humidity_alert=1, fahrenheit=True)

        reading = decode(payload)

        assert reading.flags == ReadingFlags(temperature_alert=2, humidity_alert=1, fahrenheit=True)
        assert reading.humidity == 45
        assert reading.temperature == 22.0

    def test_accepts_longer_payloads(self):
        payload = encode_reading(18.2, 55) + b"\x00\x01"

        assert decode(payload).temperature == 18.2

    def test_accepts_bytearray(self):
        assert decode(bytearray(encode_reading(18.2, 55))).humidity == 55


class TestDecodeErrors:
    """Every malformed payload maps to exactly one DecodeError"""

    @pytest.mark.parametrize("length", range(MANUFACTURER_DATA_LAYOUT.min_length))
    def test_short_manufacturer_payload(self, length):
        payload = encode_reading(21.5, 75)[:length]

        with pytest.raises(DecodeError) as exc_info:
            decode(payload)

        assert exc_info.value.kind is DecodeErrorKind.TOO_SHORT

    @pytest.mark.parametrize("length", range(SERVICE_DATA_LAYOUT.min_length))
    def test_short_service_payload(self, length):
        payload = encode_reading(21.5, 75, layout=SERVICE_DATA_LAYOUT)[:length]

        with pytest.raises(DecodeError) as exc_info:
            decode(payload, SERVICE_DATA_LAYOUT)

        assert exc_info.value.kind is DecodeErrorKind.TOO_SHORT

    def test_humidity_above_100(self):
        payload = bytes([0] * 8 + [0x05, 0x95, 101])

        with pytest.raises(DecodeError) as exc_info:
            decode(payload)

        assert exc_info.value.kind is DecodeErrorKind.OUT_OF_RANGE

    def test_tenths_nibble_above_nine(self):
        payload = bytes([0] * 8 + [0x0A, 0x95, 50])

        with pytest.raises(DecodeError) as exc_info:
            decode(payload)

        assert exc_info.value.kind is DecodeErrorKind.MALFORMED

    def test_temperature_out_of_range(self):
        payload = bytes([0] * 8 + [0x00, 0xFF, 50])

        with pytest.raises(DecodeError) as exc_info:
            decode(payload)

        assert exc_info.value.kind is DecodeErrorKind.OUT_OF_RANGE

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError, match="too_short"):
            decode(b"")

    def test_random_payloads_never_crash(self):
        rng = random.Random(0x0969)
        for _ in range(2000):
            payload = bytes(rng.randrange(256) for _ in range(rng.randrange(16)))
            for layout in (MANUFACTURER_DATA_LAYOUT, SERVICE_DATA_LAYOUT):
                try:
                    result = decode(payload, layout)
                except DecodeError:
                    continue
                assert isinstance(result, Reading)


class TestRoundTrip:
    """Encode-then-decode reproduces the value at one decimal"""

    @pytest.mark.parametrize("temperature", [-30.0, -20.5, -9.9, -0.5, 0.0, 0.5, 9.5, 21.5, 24.9, 69.9, 70.0])
    def test_temperature(self, temperature):
        assert decode(encode_reading(temperature, 50)).temperature == temperature

    @pytest.mark.parametrize("humidity", [0, 1, 50, 99, 100])
    def test_humidity(self, humidity):
        assert decode(encode_reading(21.0, humidity)).humidity == humidity

    def test_service_layout(self):
        payload = encode_reading(-5.5, 33, battery=87, layout=SERVICE_DATA_LAYOUT)

        assert decode(payload, SERVICE_DATA_LAYOUT) == Reading(temperature=-5.5, humidity=33, battery=87)
