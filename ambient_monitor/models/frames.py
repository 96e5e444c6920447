"""Data models for audio stream configuration and sample blocks"""

from dataclasses import dataclass
import numpy as np

from ambient_monitor.models.enums import AudioSource


@dataclass(frozen=True)
class AudioStreamConfig:
    """One candidate configuration for opening a microphone stream

    Attributes:
        source: Kind of microphone input
        sample_rate: Sample rate in Hz (e.g., 48000)
        channels: Channel count, always mono
        dtype: Sample encoding, always 16-bit linear PCM
    """
    source: AudioSource
    sample_rate: int
    channels: int = 1
    dtype: str = "int16"

    def __post_init__(self):
        """Validate stream configuration"""
        assert self.sample_rate > 0, "Sample rate must be positive"
        assert self.channels == 1, "Only mono capture is supported"
        assert self.dtype == "int16", "Only 16-bit PCM is supported"


# Preference order: unprocessed mic first, then the standard mic at decreasing rates
DEFAULT_STREAM_CONFIGS = (
    AudioStreamConfig(AudioSource.RAW_UNPROCESSED_MIC, 48000),
    AudioStreamConfig(AudioSource.STANDARD_MIC, 48000),
    AudioStreamConfig(AudioSource.STANDARD_MIC, 44100),
)


@dataclass
class AudioBlock:
    """Samples returned by a single read of the active stream

    Attributes:
        samples: Signed 16-bit PCM samples as a 1-D numpy array
        sample_rate: Sample rate in Hz of the stream that produced them
    """
    samples: np.ndarray  # int16 PCM samples
    sample_rate: int

    def __post_init__(self):
        """Validate audio block data.

        Multi-channel reads of shape (frames, 1) are flattened so the level
        estimator always sees a 1-D sequence.
        """
        assert isinstance(self.samples, np.ndarray), "Samples must be numpy array"
        assert self.sample_rate > 0, "Sample rate must be positive"
        if self.samples.ndim > 1:
            self.samples = self.samples.reshape(-1)

    def __len__(self) -> int:
        return int(self.samples.size)
