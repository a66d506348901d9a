# src/telloseek/telemetry_store.py
"""
Telemetry Store Module
======================

Parses the vehicle's state stream and keeps the most recent valid snapshot.

The vehicle broadcasts a semicolon separated ``key:value`` record at about
10 Hz, for example::

    pitch:0;roll:0;yaw:12;vgx:0;vgy:0;vgz:0;templ:60;temph:62;tof:50;h:45;bat:80;baro:12.4;time:3;agx:0;agy:0;agz:-999;

A record is a valid snapshot only when both ``h`` (height) and ``bat``
(battery) are present and numeric. Unknown keys are ignored and a failed
parse never replaces or clears the stored snapshot.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ('h', 'bat')

# wire key -> VehicleState field
_FIELD_MAP = {
    'h': 'height_cm',
    'bat': 'battery_percent',
    'tof': 'time_of_flight_cm',
    'vgx': 'vx',
    'vgy': 'vy',
    'vgz': 'vz',
    'pitch': 'pitch',
    'roll': 'roll',
    'yaw': 'yaw',
    'templ': 'temperature_low',
    'temph': 'temperature_high',
    'baro': 'barometer',
    'time': 'motor_time',
    'agx': 'ax',
    'agy': 'ay',
    'agz': 'az',
}


@dataclass(frozen=True)
class VehicleState:
    """Telemetry snapshot. Only height and battery are guaranteed."""
    height_cm: float
    battery_percent: float
    time_of_flight_cm: Optional[float] = None
    vx: Optional[float] = None              # cm/s
    vy: Optional[float] = None
    vz: Optional[float] = None
    pitch: Optional[float] = None           # degrees
    roll: Optional[float] = None
    yaw: Optional[float] = None
    temperature_low: Optional[float] = None   # degrees C
    temperature_high: Optional[float] = None
    barometer: Optional[float] = None       # meters
    motor_time: Optional[float] = None      # seconds
    ax: Optional[float] = None
    ay: Optional[float] = None
    az: Optional[float] = None
    received_at: float = field(default_factory=time.monotonic, compare=False)

    @property
    def velocities(self):
        return (self.vx, self.vy, self.vz)

    @property
    def attitude(self):
        return (self.pitch, self.roll, self.yaw)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize using the vehicle's own key names, skipping unknown values."""
        payload = {}
        for wire_key, attr in _FIELD_MAP.items():
            value = getattr(self, attr)
            if value is not None:
                payload[wire_key] = value
        return payload

    def summary(self) -> str:
        parts = [f"H:{self.height_cm:g}cm"]
        if self.time_of_flight_cm is not None:
            parts.append(f"ToF:{self.time_of_flight_cm:g}cm")
        parts.append(f"Bat:{self.battery_percent:g}%")
        return " ".join(parts)


def _parse_number(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_state(text: str) -> Optional[VehicleState]:
    """
    Parse one state record into a VehicleState.

    Args:
        text: Raw record, e.g. ``"h:45;bat:80;tof:50"``.

    Returns:
        VehicleState, or None if height or battery is missing or not numeric.
    """
    values: Dict[str, float] = {}
    for pair in text.strip().split(';'):
        key, sep, raw_value = pair.partition(':')
        key = key.strip()
        if not sep or key not in _FIELD_MAP:
            continue
        number = _parse_number(raw_value.strip())
        if number is not None:
            values[_FIELD_MAP[key]] = number

    if any(_FIELD_MAP[key] not in values for key in REQUIRED_KEYS):
        return None
    return VehicleState(**values)


class TelemetryStore:
    """
    Holds at most one VehicleState, always the most recently parsed valid one.

    Writes replace the whole snapshot under a lock, so readers always see a
    fully constructed state.
    """

    def __init__(self):
        self._lock = Lock()
        self._state: Optional[VehicleState] = None
        self.accepted = 0
        self.rejected = 0

    @property
    def latest(self) -> Optional[VehicleState]:
        with self._lock:
            return self._state

    def update(self, state: VehicleState) -> None:
        with self._lock:
            self._state = state
            self.accepted += 1

    def update_from_text(self, text: str) -> bool:
        """
        Parse a raw record and store it when valid.

        Returns:
            bool: True if the snapshot was replaced, False if the record was dropped.
        """
        state = parse_state(text)
        if state is None:
            with self._lock:
                self.rejected += 1
            logger.debug(f"Dropped invalid telemetry record: {text[:60]!r}")
            return False
        self.update(state)
        return True

    def age(self) -> Optional[float]:
        """Seconds since the current snapshot was received, or None."""
        state = self.latest
        if state is None:
            return None
        return time.monotonic() - state.received_at

    def clear(self) -> None:
        with self._lock:
            self._state = None
