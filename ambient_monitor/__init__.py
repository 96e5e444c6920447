"""Ambient pressure, altitude and sound level monitor"""

__version__ = "0.1.0"
