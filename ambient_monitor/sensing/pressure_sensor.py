"""Barometric pressure source backed by the Linux IIO subsystem

IIO barometers (BMP280, LPS22HB, ...) expose their reading under
/sys/bus/iio/devices/iio:deviceN either as a processed `in_pressure_input`
value or as `in_pressure_raw` with an `in_pressure_scale` factor. Both are in
kilopascals.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)

HPA_PER_KPA = 10.0


class PressureSensorError(Exception):
    """Exception raised when the barometer cannot be read"""
    pass


class IioPressureSensor:
    """Polls an IIO barometer and forwards each sample in hPa.

    Attributes:
        iio_root: Directory holding iio:deviceN entries
        poll_interval: Seconds between samples
        device_path: Selected device directory (None until found)
    """

    def __init__(self, iio_root: Optional[str] = None, poll_interval: Optional[float] = None):
        self.iio_root = Path(iio_root if iio_root is not None else config.get('sensor.iio_root', '/sys/bus/iio/devices'))
        self.poll_interval = poll_interval if poll_interval is not None else config.get('sensor.poll_interval', 0.2)
        self.device_path: Optional[Path] = None
        self.samples_read = 0

    def find_device(self) -> Optional[Path]:
        """Locate the first IIO device that reports pressure"""
        if not self.iio_root.is_dir():
            return None

        for device in sorted(self.iio_root.glob('iio:device*')):
            if (device / 'in_pressure_input').exists() or (device / 'in_pressure_raw').exists():
                self.device_path = device
                logger.info(f"Found barometer at {device}")
                return device
        return None

    def read_pressure_hpa(self) -> float:
        """Read one sample from the selected device

        Returns:
            Pressure in hectopascals

        Raises:
            PressureSensorError: If no device is selected or the read fails
        """
        if self.device_path is None:
            raise PressureSensorError("No barometer selected")

        try:
            processed = self.device_path / 'in_pressure_input'
            if processed.exists():
                kpa = float(processed.read_text().strip())
            else:
                raw = float((self.device_path / 'in_pressure_raw').read_text().strip())
                scale_file = self.device_path / 'in_pressure_scale'
                scale = float(scale_file.read_text().strip()) if scale_file.exists() else 1.0
                kpa = raw * scale
        except (OSError, ValueError) as e:
            raise PressureSensorError(f"Failed to read barometer: {e}") from e

        return kpa * HPA_PER_KPA

    async def start(self, on_pressure: Callable[[float], object]) -> None:
        """Poll the barometer until cancelled.

        Runs as an independent asyncio task. Without a barometer the task
        returns immediately and the pressure channel stays silent.

        Args:
            on_pressure: Called with each sample in hPa
        """
        if self.device_path is None and self.find_device() is None:
            logger.warning(f"No IIO barometer under {self.iio_root}, pressure channel disabled")
            return

        logger.info(f"Polling barometer every {self.poll_interval}s")
        while True:
            try:
                pressure = self.read_pressure_hpa()
                self.samples_read += 1
                on_pressure(pressure)
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                logger.info("Pressure sensor task cancelled")
                break
            except PressureSensorError as e:
                logger.warning(str(e))
                await asyncio.sleep(self.poll_interval)
            except Exception as e:
                logger.error(f"Error handling pressure sample: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval)
