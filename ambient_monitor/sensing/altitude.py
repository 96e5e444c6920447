"""Altitude model

Converts barometric pressure to altitude with the international barometric
formula in its troposphere-only form:

    altitude = 44330 * (1 - (p / p0) ** (1 / 5.255))
"""

import math

SEA_LEVEL_PRESSURE = 1013.25  # hPa
_SCALE_M = 44330.0
_EXPONENT = 1.0 / 5.255


class InvalidSample(ValueError):
    """Exception raised for a pressure outside the formula's domain"""
    pass


def altitude(pressure_hpa: float, sea_level_hpa: float = SEA_LEVEL_PRESSURE, strict: bool = False) -> float:
    """Compute altitude in meters from a pressure in hPa.

    Pure function: the result depends only on its arguments.

    A pressure that is not a positive finite number has no real altitude.
    By default the result is NaN so the pipeline keeps running and the
    reading simply carries no usable altitude.

    Args:
        pressure_hpa: Measured pressure in hectopascals
        sea_level_hpa: Reference pressure at altitude zero
        strict: Raise InvalidSample instead of returning NaN

    Returns:
        Altitude in meters (NaN for an invalid sample when not strict)

    Raises:
        InvalidSample: If strict and the pressure is not positive and finite
    """
    if not (math.isfinite(pressure_hpa) and pressure_hpa > 0):
        if strict:
            raise InvalidSample(f"Pressure must be positive and finite, got {pressure_hpa}")
        return math.nan

    return _SCALE_M * (1.0 - (pressure_hpa / sea_level_hpa) ** _EXPONENT)
