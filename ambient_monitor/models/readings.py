"""Data models for fused readings and status notifications"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import numpy as np


def _as_float32(value: Optional[float]) -> Optional[float]:
    """Round a value through float32, the width the sensor delivers"""
    if value is None:
        return None
    return float(np.float32(value))


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class FusedReading:
    """Snapshot of the latest pressure, altitude and sound level

    A field that has never been updated in the current session is None.
    The two halves are paced independently: pressure/altitude come from the
    most recent sensor event and decibel from the most recent audio block.

    Attributes:
        pressure_hpa: Barometric pressure in hectopascals
        altitude_m: Altitude derived from pressure_hpa, in meters (may be NaN
                    for a physically invalid pressure)
        decibel: Smoothed sound level estimate in [0, 120]
        timestamp: When this snapshot was produced (seconds since epoch)
    """
    pressure_hpa: Optional[float] = None
    altitude_m: Optional[float] = None
    decibel: Optional[float] = None
    timestamp: float = 0.0

    def __post_init__(self):
        """Validate reading"""
        assert self.timestamp >= 0, "Timestamp must be non-negative"
        if self.decibel is not None:
            assert 0.0 <= self.decibel <= 120.0, "Decibel must be in [0, 120]"

    def with_pressure(self, pressure_hpa: float, altitude_m: float, timestamp: float) -> "FusedReading":
        return replace(self, pressure_hpa=pressure_hpa, altitude_m=altitude_m, timestamp=timestamp)

    def with_level(self, decibel: float, timestamp: float) -> "FusedReading":
        return replace(self, decibel=decibel, timestamp=timestamp)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the reading broadcast.

        Pressure and altitude go out as float32 values and decibel as a
        double. Non-finite values are sent as null so the payload stays
        valid JSON.
        """
        return {
            'pressure_hpa': _finite_or_none(_as_float32(self.pressure_hpa)),
            'altitude_m': _finite_or_none(_as_float32(self.altitude_m)),
            'decibel': self.decibel,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class StatusNotification:
    """Text of the persistent status notification

    Attributes:
        title: First line (pressure)
        text: Second line (altitude and sound level)
        alert: True only for the first notification of a session
    """
    title: str
    text: str
    alert: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {'title': self.title, 'text': self.text, 'alert': self.alert}
