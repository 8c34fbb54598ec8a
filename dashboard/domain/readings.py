"""Probe MyElectricalData payloads for their list of daily readings.

The API has answered with several shapes over time. Each strategy below
takes the raw payload and returns the reading list it recognises, or None;
they are tried in order and the first hit wins.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

Reading = dict[str, Any]
Strategy = Callable[[Any], Optional[list]]

_VALUE_KEYS = ("value", "Value", "energy", "Energy")
_DATE_KEYS = ("date", "Date", "start", "Start")


def _top_level_list(raw: Any) -> Optional[list]:
    return raw if isinstance(raw, list) else None


def _meter_reading_list(raw: Any) -> Optional[list]:
    if isinstance(raw, dict) and isinstance(raw.get("meter_reading"), list):
        return raw["meter_reading"]
    return None


def _meter_reading_intervals(raw: Any) -> Optional[list]:
    if not isinstance(raw, dict) or not isinstance(raw.get("meter_reading"), dict):
        return None
    meter = raw["meter_reading"]
    if isinstance(meter.get("interval_reading"), list):
        return meter["interval_reading"]
    # Any list under meter_reading, else the object itself as a single reading
    flattened = [item for value in meter.values() if isinstance(value, list) for item in value]
    return flattened or [meter]


def _interval_reading(raw: Any) -> Optional[list]:
    if isinstance(raw, dict) and isinstance(raw.get("interval_reading"), list):
        return raw["interval_reading"]
    return None


def _readings_key(raw: Any) -> Optional[list]:
    if isinstance(raw, dict) and isinstance(raw.get("readings"), list):
        return raw["readings"]
    return None


def _first_list_value(raw: Any) -> Optional[list]:
    if not isinstance(raw, dict):
        return None
    for value in raw.values():
        if isinstance(value, list):
            return value
        if isinstance(value, dict) and isinstance(value.get("interval_reading"), list):
            return value["interval_reading"]
    return None


STRATEGIES: list[Strategy] = [
    _top_level_list,
    _meter_reading_list,
    _meter_reading_intervals,
    _interval_reading,
    _readings_key,
    _first_list_value,
]


def extract_readings(raw: Any) -> list[Reading]:
    if not raw:
        return []
    for strategy in STRATEGIES:
        found = strategy(raw)
        if found is not None:
            return [r for r in found if isinstance(r, dict)]
    return []


def is_watt_hours(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    meter = raw.get("meter_reading")
    if not isinstance(meter, dict):
        return False
    return (meter.get("reading_type") or {}).get("unit") == "Wh"


def reading_date(reading: Reading) -> Optional[str]:
    for key in _DATE_KEYS:
        value = reading.get(key)
        if value:
            return str(value)
    return None


def reading_value(reading: Reading) -> Optional[float]:
    for key in _VALUE_KEYS:
        value = reading.get(key)
        if value:
            try:
                return float(value)
            except (TypeError, ValueError):
                return 0.0
    # an explicit zero still counts as a reading
    for key in _VALUE_KEYS:
        if reading.get(key) is not None:
            return 0.0
    return None


@dataclass(frozen=True)
class ReadingBatch:
    """One upstream response: its readings and the divisor that makes them kWh."""

    readings: list[Reading]
    divisor: float = 1.0

    @classmethod
    def from_payload(cls, raw: Any) -> "ReadingBatch":
        return cls(readings=extract_readings(raw), divisor=1000.0 if is_watt_hours(raw) else 1.0)

    def kwh(self, reading: Reading) -> float:
        value = reading_value(reading)
        return (value or 0.0) / self.divisor

    def on_day(self, day: str) -> Optional[Reading]:
        for r in self.readings:
            d = reading_date(r)
            if d and (d == day or d.startswith(day)):
                return r
        return None

    def value_on(self, day: str) -> float:
        r = self.on_day(day)
        return self.kwh(r) if r is not None else 0.0

    def total_between(self, start_day: str, end_day: str) -> float:
        """Sum over readings dated in ``[start_day, end_day)``."""
        total = 0.0
        for r in self.readings:
            d = reading_date(r)
            if d and start_day <= d < end_day and reading_value(r) is not None:
                total += self.kwh(r)
        return total

    def total(self) -> float:
        return sum(self.kwh(r) for r in self.readings if reading_value(r) is not None)
