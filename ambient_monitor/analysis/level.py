"""Sound Level Estimator

Turns 16-bit PCM blocks into a smoothed decibel figure for display.

Per block:
1. Normalize samples to [-1, 1] (divide by 32768)
2. RMS over the block
3. dBFS = 20 * log10(rms + epsilon), epsilon keeps silence finite
4. Shift by a fixed offset into a positive range and clamp to [min_db, max_db]
5. Exponential moving average against the previous smoothed value

The offset and clamp range are empirical. There is no frequency weighting
and no calibration against a reference meter, so the output tracks relative
loudness rather than true sound pressure level.
"""

import logging
from typing import Optional

import numpy as np

from ambient_monitor.models.frames import AudioBlock
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)

FULL_SCALE = 32768.0


class LevelEstimator:
    """Computes per-block level estimates and their EMA.

    Attributes:
        smoothing_alpha: Weight of the newest estimate (0.2 = 20% new, 80% history)
        offset_db: Added to dBFS to move the estimate into a positive range
        min_db: Lower clamp bound
        max_db: Upper clamp bound
        epsilon: Added to RMS before the logarithm
    """

    def __init__(
        self,
        smoothing_alpha: Optional[float] = None,
        offset_db: Optional[float] = None,
        min_db: Optional[float] = None,
        max_db: Optional[float] = None,
        epsilon: Optional[float] = None
    ):
        self.smoothing_alpha = smoothing_alpha if smoothing_alpha is not None else config.get('level.smoothing_alpha', 0.2)
        self.offset_db = offset_db if offset_db is not None else config.get('level.offset_db', 100.0)
        self.min_db = min_db if min_db is not None else config.get('level.min_db', 0.0)
        self.max_db = max_db if max_db is not None else config.get('level.max_db', 120.0)
        self.epsilon = epsilon if epsilon is not None else config.get('level.epsilon', 1e-9)

    def estimate(self, block: AudioBlock) -> float:
        """Unsmoothed, clamped level estimate for one block.

        Args:
            block: Non-empty block of int16 samples

        Returns:
            Estimated level in [min_db, max_db]

        Raises:
            ValueError: If the block is empty
        """
        if len(block) == 0:
            raise ValueError("Cannot estimate level of an empty block")

        normalized = block.samples.astype(np.float64) / FULL_SCALE
        mean_sq = float(np.mean(np.square(normalized)))
        rms = np.sqrt(mean_sq)
        db_fs = 20.0 * np.log10(rms + self.epsilon)
        estimated = float(db_fs) + self.offset_db

        return max(self.min_db, min(self.max_db, estimated))

    def smooth(self, estimated_db: float, prior_smoothed_db: float) -> float:
        """One EMA step: alpha * new + (1 - alpha) * prior"""
        smoothed = self.smoothing_alpha * estimated_db + (1.0 - self.smoothing_alpha) * prior_smoothed_db
        # Rounding can push a convex combination one ulp past the bounds
        return max(self.min_db, min(self.max_db, smoothed))

    def process(self, block: AudioBlock, prior_smoothed_db: float) -> float:
        """Estimate a block's level and smooth it against the prior value.

        Args:
            block: Non-empty block of int16 samples
            prior_smoothed_db: Smoothed value after the previous block

        Returns:
            New smoothed level
        """
        return self.smooth(self.estimate(block), prior_smoothed_db)


class LevelState:
    """Smoothed level for one capture session.

    Updated strictly sequentially by the sampling loop that owns it.
    """

    def __init__(self, estimator: Optional[LevelEstimator] = None):
        self.estimator = estimator or LevelEstimator()
        self.smoothed_db: float = 0.0

    def update(self, block: AudioBlock) -> float:
        self.smoothed_db = self.estimator.process(block, self.smoothed_db)
        logger.debug(f"Level update: {self.smoothed_db:.2f} dB over {len(block)} samples")
        return self.smoothed_db

    def reset(self) -> None:
        self.smoothed_db = 0.0
