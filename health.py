"""
Health report: the registers that matter for judging a used pack, with the
derived figures (days since events, pack voltage, discharge cycles, time spent
at each current level) worked out. Formatting is left to the caller.
"""

import datetime
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import constants
from errors import ParseError
from values import format_duration

logger = logging.getLogger(__name__)

REG_SERIAL = 2
REG_MANUFACTURE_DATE = 4
REG_SYSTEM_DATE = 8
REG_CELL_VOLTAGES = 12
REG_TEMPERATURE = 13
REG_TEMPERATURE_FORGE = 18
REG_LAST_TOOL_USE = 25
REG_LAST_CHARGE = 26
REG_DAYS_SINCE_FIRST_CHARGE = 28
REG_TOTAL_DISCHARGE = 29
REG_TOTAL_CHARGE_COUNT = 31
REG_DUMB_CHARGE_COUNT = 32
REG_REDLINK_CHARGE_COUNT = 33
REG_TOTAL_CHARGE_TIME = 35
REG_IDLE_ON_CHARGER = 36
REG_LOW_VOLTAGE_CHARGES = 38
REG_DISCHARGED_TO_EMPTY = 39
REG_OVERHEAT = 40
REG_OVERCURRENT = 41
REG_LOW_VOLTAGE = 42
REG_LOW_VOLTAGE_BOUNCE = 43
HISTOGRAM_REGISTERS = list(range(44, 64))

HEALTH_REGISTERS = [
    REG_MANUFACTURE_DATE,
    REG_DAYS_SINCE_FIRST_CHARGE,
    REG_LAST_TOOL_USE,
    REG_LAST_CHARGE,
    REG_CELL_VOLTAGES,
    REG_TEMPERATURE,
    REG_TEMPERATURE_FORGE,
    REG_TOTAL_DISCHARGE,
    REG_DISCHARGED_TO_EMPTY,
    REG_OVERHEAT,
    REG_OVERCURRENT,
    REG_LOW_VOLTAGE,
    REG_LOW_VOLTAGE_BOUNCE,
    REG_REDLINK_CHARGE_COUNT,
    REG_DUMB_CHARGE_COUNT,
    REG_TOTAL_CHARGE_COUNT,
    REG_TOTAL_CHARGE_TIME,
    REG_IDLE_ON_CHARGER,
    REG_LOW_VOLTAGE_CHARGES,
] + HISTOGRAM_REGISTERS + [
    REG_SYSTEM_DATE,
    REG_SERIAL,
]


@dataclass
class ChargingStats:
    redlink_charge_count: int
    dumb_charge_count: int
    total_charge_count: int
    total_charge_time: str
    time_idling_on_charger: str
    low_voltage_charges: int


@dataclass
class UsageStats:
    total_discharge_ah: float
    total_discharge_cycles: Optional[float]
    times_discharged_to_empty: int
    times_overheated: int
    overcurrent_events: int
    low_voltage_events: int
    low_voltage_bounce: int
    total_time_on_tool: str


@dataclass
class DischargeHistogramEntry:
    current_range: str
    seconds: int
    duration: str
    percentage: int


@dataclass
class HealthReport:
    timestamp: datetime.datetime
    battery_type: int
    battery_description: str
    capacity_ah: int
    electronic_serial: int
    manufacture_date: datetime.datetime
    days_since_first_charge: int
    days_since_last_tool_use: int
    days_since_last_charge: int
    pack_voltage: float
    cell_voltages: Tuple[int, ...]
    cell_imbalance: int
    temperature: Optional[float]
    charging_stats: ChargingStats
    usage_stats: UsageStats
    discharge_histogram: List[DischargeHistogramEntry] = field(default_factory=list)


def _current_range(bucket):
    if bucket == len(HISTOGRAM_REGISTERS) - 1:
        return "> 200A"
    return "%d-%dA" % ((bucket + 1) * 10, (bucket + 2) * 10)


def discharge_histogram(seconds):
    total = sum(seconds)
    entries = []
    for bucket, time_seconds in enumerate(seconds):
        percentage = round(time_seconds / total * 100) if total else 0
        entries.append(DischargeHistogramEntry(_current_range(bucket), time_seconds,
                                               format_duration(time_seconds), percentage))
    return entries


def _require(values, register_id, what):
    try:
        return values[register_id]
    except KeyError:
        raise ParseError("Could not read " + what) from None


def build_report(values, now=None):
    """Derive a HealthReport from decoded values keyed by register id."""
    serial_info = _require(values, REG_SERIAL, "battery serial info")
    manufacture_date = _require(values, REG_MANUFACTURE_DATE, "manufacture date").value
    cells = _require(values, REG_CELL_VOLTAGES, "cell voltages")

    capacity, description = constants.batteryTypes.get(serial_info.battery_type, (0, "Unknown"))

    # Day counts are relative to the pack's own clock, not ours
    system_date = values[REG_SYSTEM_DATE].value if REG_SYSTEM_DATE in values else now
    if system_date is None:
        system_date = datetime.datetime.now(datetime.timezone.utc)
    last_tool_use = values[REG_LAST_TOOL_USE].value if REG_LAST_TOOL_USE in values else system_date
    last_charge = values[REG_LAST_CHARGE].value if REG_LAST_CHARGE in values else system_date

    temperature = None
    for register_id in (REG_TEMPERATURE, REG_TEMPERATURE_FORGE):
        if register_id in values and values[register_id].value:
            temperature = values[register_id].value
            break

    def uint(register_id):
        return values[register_id].value if register_id in values else 0

    def duration(register_id):
        return values[register_id].value if register_id in values else format_duration(0)

    charging_stats = ChargingStats(
        redlink_charge_count=uint(REG_REDLINK_CHARGE_COUNT),
        dumb_charge_count=uint(REG_DUMB_CHARGE_COUNT),
        total_charge_count=uint(REG_TOTAL_CHARGE_COUNT),
        total_charge_time=duration(REG_TOTAL_CHARGE_TIME),
        time_idling_on_charger=duration(REG_IDLE_ON_CHARGER),
        low_voltage_charges=uint(REG_LOW_VOLTAGE_CHARGES),
    )

    histogram_seconds = [uint(register_id) for register_id in HISTOGRAM_REGISTERS]
    total_discharge_ah = uint(REG_TOTAL_DISCHARGE) / 3600
    usage_stats = UsageStats(
        total_discharge_ah=total_discharge_ah,
        total_discharge_cycles=total_discharge_ah / capacity if capacity else None,
        times_discharged_to_empty=uint(REG_DISCHARGED_TO_EMPTY),
        times_overheated=uint(REG_OVERHEAT),
        overcurrent_events=uint(REG_OVERCURRENT),
        low_voltage_events=uint(REG_LOW_VOLTAGE),
        low_voltage_bounce=uint(REG_LOW_VOLTAGE_BOUNCE),
        total_time_on_tool=format_duration(sum(histogram_seconds)),
    )

    return HealthReport(
        timestamp=now or datetime.datetime.now(datetime.timezone.utc),
        battery_type=serial_info.battery_type,
        battery_description=description,
        capacity_ah=capacity,
        electronic_serial=serial_info.serial,
        manufacture_date=manufacture_date,
        days_since_first_charge=uint(REG_DAYS_SINCE_FIRST_CHARGE),
        days_since_last_tool_use=(system_date - last_tool_use).days,
        days_since_last_charge=(system_date - last_charge).days,
        pack_voltage=cells.pack_voltage,
        cell_voltages=cells.value,
        cell_imbalance=cells.imbalance,
        temperature=temperature,
        charging_stats=charging_stats,
        usage_stats=usage_stats,
        discharge_histogram=discharge_histogram(histogram_seconds),
    )


def health_report(session, force_refresh=True):
    logger.info("Reading battery. This will take 5-10sec")
    values = dict(session.read_registers(HEALTH_REGISTERS, force_refresh=force_refresh))
    return build_report(values)
