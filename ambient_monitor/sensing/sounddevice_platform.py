"""Audio platform backed by PortAudio through sounddevice"""

import logging
from typing import Optional

import numpy as np

from ambient_monitor.models.enums import AudioSource
from ambient_monitor.models.frames import AudioStreamConfig
from ambient_monitor.models.interfaces import AudioInputStream, AudioPlatform, TransientReadFailure
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)


class SoundDeviceInputStream(AudioInputStream):
    """Blocking mono int16 input stream.

    Reads go through sounddevice's blocking API, so the caller's thread
    waits until the requested number of frames has been captured.
    """

    def __init__(self, sd, device: Optional[int], stream_config: AudioStreamConfig, buffer_size: int):
        self._sd = sd
        self.device = device
        self.config = stream_config
        self.buffer_size = buffer_size
        self._stream = sd.InputStream(
            device=device,
            samplerate=stream_config.sample_rate,
            channels=stream_config.channels,
            dtype=stream_config.dtype,
            blocksize=0,
        )
        try:
            self._stream.start()
        except Exception:
            self.close()
            raise

    @property
    def is_initialized(self) -> bool:
        return self._stream is not None and self._stream.active and not self._stream.closed

    def read(self, frames: int) -> np.ndarray:
        try:
            data, overflowed = self._stream.read(frames)
        except self._sd.PortAudioError as e:
            raise TransientReadFailure(str(e)) from e
        if overflowed:
            logger.debug("Input overflow, samples were dropped")
        return np.asarray(data, dtype=np.int16).reshape(-1)

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            if stream.active:
                stream.stop()
        finally:
            stream.close()


class SoundDevicePlatform(AudioPlatform):
    """Maps stream configurations onto PortAudio input devices.

    The standard microphone is PortAudio's default input. The unprocessed
    microphone is the first input device whose name contains
    `raw_device_hint` (ALSA "hw:" devices talk to the hardware directly,
    bypassing the sound server's processing chain).

    PortAudio does not expose gain control, noise suppression or echo
    cancellation switches, so no conditioning effects are reported.
    """

    def __init__(self, raw_device_hint: Optional[str] = None, backend=None):
        if backend is None:
            # Imported here so hosts without PortAudio can still run the pressure channel
            import sounddevice as backend
        self._sd = backend
        self.raw_device_hint = raw_device_hint if raw_device_hint is not None else config.get('audio.raw_device_hint', 'hw:')

    def _default_input(self) -> Optional[int]:
        device = self._sd.default.device[0]
        if device is None or int(device) < 0:
            return None
        return int(device)

    def _raw_input(self) -> Optional[int]:
        if not self.raw_device_hint:
            return None
        for index, info in enumerate(self._sd.query_devices()):
            if info.get('max_input_channels', 0) > 0 and self.raw_device_hint in info.get('name', ''):
                return index
        return None

    def _resolve_device(self, source: AudioSource) -> Optional[int]:
        if source == AudioSource.RAW_UNPROCESSED_MIC:
            return self._raw_input()
        return self._default_input()

    def min_buffer_size(self, stream_config: AudioStreamConfig) -> Optional[int]:
        device = self._resolve_device(stream_config.source)
        if device is None:
            return None

        try:
            self._sd.check_input_settings(
                device=device,
                channels=stream_config.channels,
                dtype=stream_config.dtype,
                samplerate=stream_config.sample_rate,
            )
            info = self._sd.query_devices(device)
        except Exception as e:
            logger.debug(f"Device {device} rejects {stream_config.sample_rate}Hz: {e}")
            return None

        latency = float(info.get('default_low_input_latency', 0.0) or 0.0)
        return int(latency * stream_config.sample_rate)

    def open_stream(self, stream_config: AudioStreamConfig, buffer_size: int) -> SoundDeviceInputStream:
        device = self._resolve_device(stream_config.source)
        return SoundDeviceInputStream(self._sd, device, stream_config, buffer_size)
