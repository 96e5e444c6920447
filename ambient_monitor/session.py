"""Capture session and audio sampling loop

A MeasurementSession moves between IDLE and SENSING on start/stop commands.
While SENSING, pressure events are turned into altitude and pushed into the
aggregator, and a dedicated thread reads audio blocks from the negotiated
stream, smooths their level and pushes it into the aggregator as well.

The sampling thread blocks inside each read. Stopping clears a run flag that
the loop checks between reads, so a stop takes effect at most one read later.
There is no timeout on a read: a stalled audio driver stalls the loop.
"""

import logging
import math
import threading
import time
from typing import Optional

from ambient_monitor.analysis.level import LevelEstimator, LevelState
from ambient_monitor.fusion.aggregator import MeasurementAggregator
from ambient_monitor.models.enums import SessionState
from ambient_monitor.models.frames import AudioBlock
from ambient_monitor.models.interfaces import AudioPlatform, TransientReadFailure
from ambient_monitor.models.readings import FusedReading
from ambient_monitor.sensing.altitude import altitude, SEA_LEVEL_PRESSURE
from ambient_monitor.sensing.negotiator import (
    AudioDeviceNegotiator,
    NegotiatedStream,
    NoUsableAudioDevice,
    release_stream
)
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)


class AudioSampler:
    """Long-running loop that owns the audio stream.

    Attributes:
        negotiated: Stream, configuration and buffer size from negotiation
        level_state: Smoothed level, touched only by this loop
        generation: Aggregator session this loop publishes into
        blocks_processed: Number of non-empty blocks fed to the estimator
        skipped_reads: Reads that were empty or failed
    """

    def __init__(
        self,
        negotiated: NegotiatedStream,
        level_state: LevelState,
        aggregator: MeasurementAggregator,
        run_flag: threading.Event,
        generation: Optional[int] = None,
        read_error_backoff: float = 0.1
    ):
        self.negotiated = negotiated
        self.level_state = level_state
        self.aggregator = aggregator
        self.run_flag = run_flag
        self.generation = generation
        self.read_error_backoff = read_error_backoff
        self.blocks_processed = 0
        self.skipped_reads = 0
        self._thread = threading.Thread(target=self._run, name="audio-sampler", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop to exit.

        Returns:
            True if the thread finished within the timeout
        """
        if self._thread.ident is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _read_block(self) -> Optional[AudioBlock]:
        stream = self.negotiated.stream
        try:
            samples = stream.read(self.negotiated.buffer_size)
        except TransientReadFailure as e:
            logger.debug(f"Audio read failed, skipping: {e}")
            self.skipped_reads += 1
            time.sleep(self.read_error_backoff)
            return None

        if samples is None or len(samples) == 0:
            self.skipped_reads += 1
            return None

        return AudioBlock(samples=samples, sample_rate=self.negotiated.config.sample_rate)

    def _run(self) -> None:
        logger.info("Sampling loop started")
        try:
            while self.run_flag.is_set():
                block = self._read_block()

                # A stop may have arrived while the read was blocked
                if not self.run_flag.is_set():
                    break
                if block is None:
                    continue

                level = self.level_state.update(block)
                self.aggregator.on_level(level, generation=self.generation)
                self.blocks_processed += 1

        except Exception as e:
            logger.error(f"Sampling loop failed: {e}", exc_info=True)
        finally:
            release_stream(self.negotiated.stream)
            self.level_state.reset()
            logger.info(
                f"Sampling loop stopped after {self.blocks_processed} blocks "
                f"({self.skipped_reads} skipped reads)"
            )


class MeasurementSession:
    """IDLE -> SENSING -> IDLE lifecycle for both measurement channels.

    A failure in one channel never stops the other: without a usable
    microphone the session keeps publishing pressure and altitude.

    Attributes:
        aggregator: Shared reading and publisher fan-out
        platform: Audio subsystem (created lazily when not supplied)
        negotiator: Picks the stream configuration
        estimator: Level estimator handed to each session's LevelState
        sea_level_hpa: Reference pressure for altitude
        state: Current SessionState
    """

    def __init__(
        self,
        aggregator: MeasurementAggregator,
        platform: Optional[AudioPlatform] = None,
        negotiator: Optional[AudioDeviceNegotiator] = None,
        estimator: Optional[LevelEstimator] = None,
        sea_level_hpa: Optional[float] = None,
        stop_join_timeout: Optional[float] = None,
        read_error_backoff: Optional[float] = None
    ):
        self.aggregator = aggregator
        self.platform = platform
        self.negotiator = negotiator or AudioDeviceNegotiator()
        self.estimator = estimator or LevelEstimator()
        self.sea_level_hpa = sea_level_hpa if sea_level_hpa is not None else config.get('sensor.sea_level_pressure', SEA_LEVEL_PRESSURE)
        self.stop_join_timeout = stop_join_timeout if stop_join_timeout is not None else config.get('session.stop_join_timeout', 2.0)
        self.read_error_backoff = read_error_backoff if read_error_backoff is not None else config.get('audio.read_error_backoff', 0.1)

        self.state = SessionState.IDLE
        self.sampler: Optional[AudioSampler] = None
        self.level_state: Optional[LevelState] = None
        self._run_flag: Optional[threading.Event] = None
        self._generation: Optional[int] = None
        self._lifecycle_lock = threading.Lock()

    def _get_platform(self) -> AudioPlatform:
        if self.platform is None:
            from ambient_monitor.sensing.sounddevice_platform import SoundDevicePlatform
            self.platform = SoundDevicePlatform()
        return self.platform

    def _start_audio(self) -> None:
        try:
            platform = self._get_platform()
        except Exception as e:
            logger.warning(f"Audio subsystem unavailable, sound level disabled: {e}")
            return

        try:
            negotiated = self.negotiator.negotiate(platform)
        except NoUsableAudioDevice as e:
            logger.warning(f"No usable audio device, sound level disabled: {e}")
            return

        self.level_state = LevelState(self.estimator)
        self.sampler = AudioSampler(
            negotiated=negotiated,
            level_state=self.level_state,
            aggregator=self.aggregator,
            run_flag=self._run_flag,
            generation=self._generation,
            read_error_backoff=self.read_error_backoff
        )
        self.sampler.start()

    def start(self, microphone_permission: bool = True) -> None:
        """Begin sensing.

        Args:
            microphone_permission: Whether microphone access was granted.
                Without it only the pressure channel runs.
        """
        with self._lifecycle_lock:
            if self.state == SessionState.SENSING:
                logger.debug("Session already sensing")
                return

            logger.info("Starting measurement session")
            self._run_flag = threading.Event()
            self._run_flag.set()
            self._generation = self.aggregator.open()
            self.state = SessionState.SENSING

            if not microphone_permission:
                logger.warning("Microphone permission denied, sound level will not be captured")
                return

            self._start_audio()

    def stop(self) -> None:
        """Stop sensing. Safe to call when already idle."""
        with self._lifecycle_lock:
            if self.state == SessionState.IDLE:
                return

            logger.info("Stopping measurement session")
            self.state = SessionState.IDLE
            self._run_flag.clear()
            self.aggregator.close()
            sampler, self.sampler = self.sampler, None
            level_state, self.level_state = self.level_state, None

        if sampler is None:
            return
        if sampler.join(self.stop_join_timeout):
            level_state.reset()
        else:
            # The loop resets its own level when the read returns
            logger.warning("Sampling loop still blocked in a read; it will exit when the read returns")

    def on_pressure_event(self, pressure_hpa: float) -> Optional[FusedReading]:
        """Handle one pressure sensor event.

        Args:
            pressure_hpa: Pressure reported by the sensor

        Returns:
            The published reading, or None while idle
        """
        if self.state != SessionState.SENSING:
            return None

        altitude_m = altitude(pressure_hpa, self.sea_level_hpa)
        if math.isnan(altitude_m):
            logger.warning(f"Invalid pressure sample {pressure_hpa} hPa, altitude unavailable")
        else:
            logger.debug(f"Pressure {pressure_hpa:.2f} hPa -> altitude {altitude_m:.1f} m")

        return self.aggregator.on_pressure(pressure_hpa, altitude_m, generation=self._generation)

    def is_active(self) -> bool:
        return self.state == SessionState.SENSING

    def is_capturing_audio(self) -> bool:
        return self.sampler is not None and self.sampler.is_alive()
