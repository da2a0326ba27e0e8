"""
Register values and the decoder that produces them.

``decode`` turns the payload of a register read into one of a closed set of
immutable value types, chosen by the register's declared kind. The payload must
be exactly as long as the register; nothing is padded, truncated or defaulted.
"""

import datetime
from dataclasses import dataclass
from typing import Tuple

from errors import ParseError
from registers import ValueKind

CELL_COUNT = 5

# Thermistor interpolation points, estimated from captures
ADC_R1 = 10e3
ADC_R2 = 20e3
ADC_T1 = 50
ADC_T2 = 35
ADC_1 = 0x0180
ADC_2 = 0x022E


class RegisterValue:
    """Base for every decoded register value."""

    __slots__ = ()


@dataclass(frozen=True)
class UIntValue(RegisterValue):
    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class FloatValue(RegisterValue):
    value: float
    unit: str = "°C"

    def __str__(self):
        return f"{self.value:.2f}"


@dataclass(frozen=True)
class TextValue(RegisterValue):
    value: str

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class TimestampValue(RegisterValue):
    value: datetime.datetime

    def __str__(self):
        return self.value.strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class DurationValue(RegisterValue):
    seconds: int

    @property
    def value(self):
        return format_duration(self.seconds)

    @property
    def timedelta(self):
        return datetime.timedelta(seconds=self.seconds)

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class CellVoltagesValue(RegisterValue):
    value: Tuple[int, ...]

    @property
    def pack_voltage(self):
        return sum(self.value) / 1000

    @property
    def imbalance(self):
        return max(self.value) - min(self.value)

    def __str__(self):
        return ", ".join(f"{i + 1}: {mv:4d}" for i, mv in enumerate(self.value))


@dataclass(frozen=True)
class SerialInfoValue(RegisterValue):
    battery_type: int
    serial: int

    @property
    def value(self):
        return (self.battery_type, self.serial)

    def __str__(self):
        return f"Type: {self.battery_type:3d}, Serial: {self.serial:d}"


def format_duration(seconds):
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def calculate_temperature(adc_value):
    m = (ADC_T2 - ADC_T1) / (ADC_R2 - ADC_R1)
    b = ADC_T1 - m * ADC_R1
    resistance = ADC_R1 + (adc_value - ADC_1) * (ADC_R2 - ADC_R1) / (ADC_2 - ADC_1)
    return round(m * resistance + b, 2)


def _require_length(definition, raw, expected):
    if len(raw) != expected:
        raise ParseError("%s register 0x%04X needs %d bytes, got %d"
                         % (definition.kind.value, definition.address, expected, len(raw)))


def _decode_uint(definition, raw):
    return UIntValue(int.from_bytes(raw, definition.byteorder))


def _decode_date(definition, raw):
    _require_length(definition, raw, 4)
    epoch_time = int.from_bytes(raw, definition.byteorder)
    return TimestampValue(datetime.datetime.fromtimestamp(epoch_time, tz=datetime.timezone.utc))


def _decode_duration(definition, raw):
    _require_length(definition, raw, 4)
    return DurationValue(int.from_bytes(raw, definition.byteorder))


def _decode_ascii(definition, raw):
    # Fresh packs hold 0xFF in unwritten text, keep it visible rather than fail
    return TextValue(raw.decode("ascii", errors="replace").rstrip("\x00 "))


def _decode_serial(definition, raw):
    _require_length(definition, raw, 5)
    return SerialInfoValue(int.from_bytes(raw[0:2], definition.byteorder),
                           int.from_bytes(raw[2:5], definition.byteorder))


def _decode_adc_temperature(definition, raw):
    _require_length(definition, raw, 2)
    return FloatValue(calculate_temperature(int.from_bytes(raw, definition.byteorder)))


def _decode_decimal_temperature(definition, raw):
    _require_length(definition, raw, 2)
    return FloatValue(round(raw[0] + raw[1] / 256, 2))


def _decode_cell_voltages(definition, raw):
    _require_length(definition, raw, CELL_COUNT * 2)
    return CellVoltagesValue(tuple(int.from_bytes(raw[i:i + 2], definition.byteorder)
                                   for i in range(0, CELL_COUNT * 2, 2)))


_DECODERS = {
    ValueKind.UINT: _decode_uint,
    ValueKind.DATE: _decode_date,
    ValueKind.HHMMSS: _decode_duration,
    ValueKind.ASCII: _decode_ascii,
    ValueKind.SN: _decode_serial,
    ValueKind.ADC_T: _decode_adc_temperature,
    ValueKind.DEC_T: _decode_decimal_temperature,
    ValueKind.CELL_V: _decode_cell_voltages,
}


def decode(definition, raw):
    raw = bytes(raw)
    if len(raw) != definition.length:
        raise ParseError("Data length mismatch for register 0x%04X: expected %d bytes, got %d"
                         % (definition.address, definition.length, len(raw)))
    try:
        decoder = _DECODERS[definition.kind]
    except KeyError:
        raise ParseError("Invalid data type: %r" % (definition.kind,)) from None
    return decoder(definition, raw)
