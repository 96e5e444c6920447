"""Measurement Aggregator

This module merges the two independently paced measurement channels
(barometric pressure and sound level) into a single FusedReading and pushes
every new snapshot to the presentation boundary.

The pressure callback and the audio sampling thread call in from different
threads. All state lives behind one lock, and each update builds a new frozen
snapshot while holding it, so no reader ever sees half of an update.
"""

import logging
import threading
import time
from typing import List, Optional

from ambient_monitor.models.enums import SessionState
from ambient_monitor.models.interfaces import ReadingPublisher
from ambient_monitor.models.readings import FusedReading


logger = logging.getLogger(__name__)


class MeasurementAggregator:
    """Holds the latest pressure/altitude and level and publishes fused readings.

    The aggregator:
    1. Accepts updates only while its session is SENSING
    2. Replaces the shared snapshot atomically on every update
    3. Emits the new snapshot to every publisher before releasing the lock,
       which keeps publishes ordered and makes close() a hard barrier
    4. Isolates producers from publisher failures

    Attributes:
        publishers: Presentation-boundary sinks receiving every reading
        state: IDLE or SENSING
        latest_reading: Most recent snapshot (cached)
    """

    def __init__(self, publishers: Optional[List[ReadingPublisher]] = None):
        self.publishers: List[ReadingPublisher] = list(publishers or [])
        self.state = SessionState.IDLE
        self.latest_reading = FusedReading()
        self.publish_count = 0
        self.generation = 0
        self._lock = threading.Lock()

    def add_publisher(self, publisher: ReadingPublisher) -> None:
        with self._lock:
            self.publishers.append(publisher)

    def open(self) -> int:
        """Enter SENSING with an empty reading.

        Returns:
            Generation number of the new session. Producers pass it back with
            each update so that a producer left over from an earlier session
            cannot publish into this one.
        """
        with self._lock:
            self.generation += 1
            self.state = SessionState.SENSING
            self.latest_reading = FusedReading()
            generation = self.generation
        logger.info(f"Aggregator accepting updates (generation {generation})")
        return generation

    def close(self) -> None:
        """Enter IDLE. Once this returns nothing more is published."""
        with self._lock:
            self.state = SessionState.IDLE
        logger.info("Aggregator closed")

    def is_open(self) -> bool:
        with self._lock:
            return self.state == SessionState.SENSING

    def _accepts(self, generation: Optional[int]) -> bool:
        # Caller holds the lock
        if self.state != SessionState.SENSING:
            return False
        return generation is None or generation == self.generation

    def _emit(self, reading: FusedReading) -> None:
        # Caller holds the lock
        self.latest_reading = reading
        self.publish_count += 1
        for publisher in self.publishers:
            try:
                publisher.publish(reading)
            except Exception as e:
                logger.error(f"Publisher {type(publisher).__name__} failed: {e}", exc_info=True)

    def on_pressure(
        self,
        pressure_hpa: float,
        altitude_m: float,
        generation: Optional[int] = None
    ) -> Optional[FusedReading]:
        """Record a pressure event and publish the fused reading.

        Args:
            pressure_hpa: Measured pressure
            altitude_m: Altitude computed from that pressure
            generation: Session the event belongs to (None accepts any)

        Returns:
            The published reading, or None if the session is idle or the
            update belongs to an earlier session
        """
        with self._lock:
            if not self._accepts(generation):
                return None
            reading = self.latest_reading.with_pressure(pressure_hpa, altitude_m, time.time())
            self._emit(reading)
            return reading

    def on_level(self, decibel: float, generation: Optional[int] = None) -> Optional[FusedReading]:
        """Record a smoothed sound level and publish the fused reading.

        Args:
            decibel: Smoothed level in [0, 120]
            generation: Session the level belongs to (None accepts any)

        Returns:
            The published reading, or None if the session is idle or the
            update belongs to an earlier session
        """
        with self._lock:
            if not self._accepts(generation):
                return None
            reading = self.latest_reading.with_level(decibel, time.time())
            self._emit(reading)
            return reading

    def get_latest_reading(self) -> FusedReading:
        """Get the most recent fused reading.

        Fields that have not been updated in this session are None, which
        the presentation layer renders as a "no data" placeholder.
        """
        with self._lock:
            return self.latest_reading
