"""Unit tests for data models"""

import dataclasses

import numpy as np
import pytest

from ambient_monitor.models.enums import AudioSource
from ambient_monitor.models.frames import AudioBlock, AudioStreamConfig
from ambient_monitor.models.readings import FusedReading, StatusNotification


class TestAudioStreamConfig:

    def test_defaults_are_mono_int16(self):
        stream_config = AudioStreamConfig(AudioSource.STANDARD_MIC, 44100)
        assert stream_config.channels == 1
        assert stream_config.dtype == "int16"

    def test_invalid_sample_rate(self):
        with pytest.raises(AssertionError):
            AudioStreamConfig(AudioSource.STANDARD_MIC, 0)

    def test_stereo_rejected(self):
        with pytest.raises(AssertionError):
            AudioStreamConfig(AudioSource.STANDARD_MIC, 48000, channels=2)

    def test_hashable(self):
        assert len({AudioStreamConfig(AudioSource.STANDARD_MIC, 48000),
                    AudioStreamConfig(AudioSource.STANDARD_MIC, 48000)}) == 1


class TestAudioBlock:

    def test_length(self):
        block = AudioBlock(samples=np.zeros(4800, dtype=np.int16), sample_rate=48000)
        assert len(block) == 4800

    def test_column_vector_is_flattened(self):
        block = AudioBlock(samples=np.zeros((960, 1), dtype=np.int16), sample_rate=48000)
        assert block.samples.shape == (960,)

    def test_requires_numpy_array(self):
        with pytest.raises(AssertionError):
            AudioBlock(samples=[0, 1, 2], sample_rate=48000)


class TestFusedReading:

    def test_empty_reading(self):
        reading = FusedReading()
        assert reading.pressure_hpa is None
        assert reading.altitude_m is None
        assert reading.decibel is None

    def test_decibel_range_enforced(self):
        with pytest.raises(AssertionError):
            FusedReading(decibel=121.0)
        with pytest.raises(AssertionError):
            FusedReading(decibel=-0.5)

    def test_negative_timestamp_rejected(self):
        with pytest.raises(AssertionError):
            FusedReading(timestamp=-1.0)

    def test_updates_return_new_snapshots(self):
        original = FusedReading(decibel=30.0, timestamp=1.0)
        updated = original.with_pressure(1000.0, 110.9, 2.0)

        assert original.pressure_hpa is None
        assert updated.pressure_hpa == 1000.0
        assert updated.decibel == 30.0
        assert updated.with_level(31.0, 3.0).altitude_m == 110.9

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            FusedReading().decibel = 1.0


def test_status_notification_payload():
    notification = StatusNotification("Pressure: -- hPa", "Altitude: -- m | Sound: -- dB")
    assert notification.to_payload() == {
        'title': "Pressure: -- hPa",
        'text': "Altitude: -- m | Sound: -- dB",
        'alert': False,
    }
