"""Audio Device Negotiator

Tries an ordered list of stream configurations against the platform audio
subsystem until one initializes, then switches off the platform's signal
conditioning on the chosen stream where possible. Level estimation wants the
unmodified microphone signal; a partially conditioned signal is tolerated.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ambient_monitor.models.enums import AudioEffect
from ambient_monitor.models.frames import AudioStreamConfig, DEFAULT_STREAM_CONFIGS
from ambient_monitor.models.interfaces import AudioInputStream, AudioPlatform


logger = logging.getLogger(__name__)


class NoUsableAudioDevice(RuntimeError):
    """Exception raised when every stream configuration failed to initialize"""
    pass


@dataclass
class NegotiatedStream:
    """An initialized stream and the configuration it was opened with

    Attributes:
        stream: The opened input stream, owned by the sampling loop from here on
        config: Configuration that succeeded
        buffer_size: Samples to request per read
    """
    stream: AudioInputStream
    config: AudioStreamConfig
    buffer_size: int


def release_stream(stream: Optional[AudioInputStream]) -> None:
    """Close a stream, tolerating streams that never fully opened."""
    if stream is None:
        return
    try:
        stream.close()
    except Exception as e:
        logger.warning(f"Error releasing audio stream: {e}")


class AudioDeviceNegotiator:
    """Selects the first usable microphone configuration.

    The microphone permission is a precondition checked by the caller.

    Attributes:
        configs: Candidate configurations in preference order
    """

    CONDITIONING_EFFECTS = (
        AudioEffect.AUTOMATIC_GAIN_CONTROL,
        AudioEffect.NOISE_SUPPRESSOR,
        AudioEffect.ACOUSTIC_ECHO_CANCELER,
    )

    def __init__(self, configs: Sequence[AudioStreamConfig] = DEFAULT_STREAM_CONFIGS):
        self.configs = tuple(configs)

    def _buffer_size(self, reported: int, stream_config: AudioStreamConfig) -> int:
        # One second of samples when the platform has no preference
        return reported if reported > 0 else stream_config.sample_rate

    def _try_open(self, platform: AudioPlatform, stream_config: AudioStreamConfig) -> Optional[NegotiatedStream]:
        """Attempt a single candidate.

        Returns:
            NegotiatedStream on success, None if the candidate was rejected
        """
        reported = platform.min_buffer_size(stream_config)
        if reported is None:
            logger.info(f"Rejected {stream_config.source.value}@{stream_config.sample_rate}Hz: unsupported")
            return None

        buffer_size = self._buffer_size(reported, stream_config)

        stream = None
        try:
            stream = platform.open_stream(stream_config, buffer_size)
            if stream.is_initialized:
                return NegotiatedStream(stream=stream, config=stream_config, buffer_size=buffer_size)
            logger.info(f"Rejected {stream_config.source.value}@{stream_config.sample_rate}Hz: not initialized")
        except Exception as e:
            logger.info(f"Rejected {stream_config.source.value}@{stream_config.sample_rate}Hz: {e}")

        release_stream(stream)
        return None

    def _disable_conditioning(self, platform: AudioPlatform, stream: AudioInputStream) -> None:
        for effect in self.CONDITIONING_EFFECTS:
            try:
                if platform.effect_available(stream, effect):
                    platform.disable_effect(stream, effect)
                    logger.debug(f"Disabled {effect.value}")
            except Exception as e:
                logger.debug(f"Could not disable {effect.value}: {e}")

    def negotiate(self, platform: AudioPlatform) -> NegotiatedStream:
        """Open the first configuration that initializes.

        Args:
            platform: Audio subsystem to open streams on

        Returns:
            NegotiatedStream for the winning configuration

        Raises:
            NoUsableAudioDevice: If every configuration failed
        """
        for stream_config in self.configs:
            negotiated = self._try_open(platform, stream_config)
            if negotiated is not None:
                self._disable_conditioning(platform, negotiated.stream)
                logger.info(
                    f"Audio stream opened: source={stream_config.source.value}, "
                    f"sample_rate={stream_config.sample_rate}Hz, buffer_size={negotiated.buffer_size}"
                )
                return negotiated

        raise NoUsableAudioDevice(f"None of {len(self.configs)} audio configurations could be initialized")
