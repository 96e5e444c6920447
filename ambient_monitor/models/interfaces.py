"""Base interfaces for the audio platform and the presentation boundary"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ambient_monitor.models.enums import AudioEffect
from ambient_monitor.models.frames import AudioStreamConfig
from ambient_monitor.models.readings import FusedReading


class TransientReadFailure(Exception):
    """Exception raised when a single audio read produced no samples"""
    pass


class AudioInputStream(ABC):
    """An opened microphone stream"""

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether the stream reached a usable state after opening"""
        pass

    @abstractmethod
    def read(self, frames: int) -> np.ndarray:
        """Block until up to `frames` int16 samples are available

        Args:
            frames: Number of samples to read

        Returns:
            1-D int16 array; empty when the read produced nothing

        Raises:
            TransientReadFailure: If this single read failed
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the stream. Must be idempotent and safe after a partial open."""
        pass


class AudioPlatform(ABC):
    """Platform audio subsystem queried during device negotiation"""

    @abstractmethod
    def min_buffer_size(self, stream_config: AudioStreamConfig) -> Optional[int]:
        """Minimum viable read buffer for a configuration

        Returns:
            Buffer size in samples, or None if the combination is unsupported.
            A non-positive size means the platform has no preference.
        """
        pass

    @abstractmethod
    def open_stream(self, stream_config: AudioStreamConfig, buffer_size: int) -> AudioInputStream:
        """Open an input stream for a configuration"""
        pass

    def effect_available(self, stream: AudioInputStream, effect: AudioEffect) -> bool:
        """Whether a conditioning effect exists for the stream's session"""
        return False

    def disable_effect(self, stream: AudioInputStream, effect: AudioEffect) -> None:
        """Turn a conditioning effect off for the stream's session"""
        raise NotImplementedError(f"{effect.value} is not supported on this platform")


class ReadingPublisher(ABC):
    """Receives every fused reading produced by the aggregator"""

    @abstractmethod
    def publish(self, reading: FusedReading) -> None:
        """Deliver a reading. Must not block; delivery is at-most-once."""
        pass
