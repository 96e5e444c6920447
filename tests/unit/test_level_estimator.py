"""Unit tests for the sound level estimator"""

import math

import numpy as np
import pytest

from ambient_monitor.analysis.level import LevelEstimator, LevelState
from ambient_monitor.models.frames import AudioBlock
from tests.fakes import tone, silence


def block(samples, sample_rate=48000):
    return AudioBlock(samples=samples, sample_rate=sample_rate)


@pytest.fixture
def estimator():
    return LevelEstimator(smoothing_alpha=0.2, offset_db=100.0, min_db=0.0, max_db=120.0, epsilon=1e-9)


def test_defaults():
    est = LevelEstimator()
    assert est.smoothing_alpha == 0.2
    assert est.offset_db == 100.0
    assert est.min_db == 0.0
    assert est.max_db == 120.0
    assert est.epsilon == 1e-9


def test_silence_clamps_to_zero(estimator):
    # 20 * log10(1e-9) + 100 = -80 before clamping
    assert 20 * math.log10(1e-9) + 100 == pytest.approx(-80.0)
    assert estimator.estimate(block(silence())) == 0.0


def test_full_scale_is_about_100(estimator):
    estimated = estimator.estimate(block(tone(32767)))
    assert estimated == pytest.approx(100.0, abs=0.01)
    assert 0.0 <= estimated <= 120.0


def test_most_negative_sample_is_exactly_full_scale(estimator):
    samples = np.full(64, -32768, dtype=np.int16)
    assert estimator.estimate(block(samples)) == pytest.approx(100.0, abs=1e-6)


def test_half_scale_is_6db_lower(estimator):
    full = estimator.estimate(block(tone(32767)))
    half = estimator.estimate(block(tone(16384)))
    assert full - half == pytest.approx(20 * math.log10(2), abs=0.01)


def test_single_sample_block(estimator):
    assert estimator.estimate(block(np.array([3277], dtype=np.int16))) == pytest.approx(80.0, abs=0.01)


def test_empty_block_rejected(estimator):
    with pytest.raises(ValueError):
        estimator.estimate(block(np.array([], dtype=np.int16)))


def test_offset_can_push_above_max():
    est = LevelEstimator(offset_db=130.0)
    assert est.estimate(block(tone(32767))) == 120.0


def test_process_smooths(estimator):
    smoothed = estimator.process(block(tone(32767)), 50.0)
    assert smoothed == pytest.approx(0.2 * 100.0 + 0.8 * 50.0, abs=0.01)


def test_one_step_distance_shrinks_by_point_eight(estimator):
    samples = block(tone(8000))
    estimated = estimator.estimate(samples)
    prior = 10.0
    smoothed = estimator.process(samples, prior)
    assert abs(smoothed - estimated) == pytest.approx(0.8 * abs(prior - estimated))


def test_constant_input_converges(estimator):
    samples = block(tone(8000))
    target = estimator.estimate(samples)
    value = 0.0
    for _ in range(60):
        value = estimator.process(samples, value)
    assert value == pytest.approx(target, abs=0.01)


def test_two_dimensional_reads_are_flattened(estimator):
    column = tone(32767).reshape(-1, 1)
    assert estimator.estimate(block(column)) == pytest.approx(100.0, abs=0.01)


class TestLevelState:

    def test_starts_at_zero(self):
        assert LevelState().smoothed_db == 0.0

    def test_first_update_from_zero(self, estimator):
        state = LevelState(estimator)
        value = state.update(block(tone(32767)))
        assert value == pytest.approx(20.0, abs=0.01)
        assert state.smoothed_db == value

    def test_updates_accumulate(self, estimator):
        state = LevelState(estimator)
        state.update(block(tone(32767)))
        second = state.update(block(tone(32767)))
        assert second == pytest.approx(0.2 * 100 + 0.8 * 20, abs=0.01)

    def test_reset(self, estimator):
        state = LevelState(estimator)
        state.update(block(tone(32767)))
        state.reset()
        assert state.smoothed_db == 0.0
