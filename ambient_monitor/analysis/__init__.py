"""Signal analysis"""

from ambient_monitor.analysis.level import LevelEstimator, LevelState

__all__ = ["LevelEstimator", "LevelState"]
