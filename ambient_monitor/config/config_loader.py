"""Configuration loader for Ambient Monitor"""

import logging
import math
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
import os


logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for Ambient Monitor"""

    def __init__(self, config_path: Optional[str] = None):
        self.explicit = config_path is not None
        if config_path is None:
            config_path = os.getenv('AMBIENT_MONITOR_CONFIG')
            self.explicit = config_path is not None
        if config_path is None:
            env = os.getenv('AMBIENT_ENV', 'development')
            # Try environment-specific config first, fall back to default
            env_config = Path(f"config/config.{env}.yaml")
            if env_config.exists():
                config_path = str(env_config)
            else:
                config_path = "config/config.yaml"

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            if self.explicit:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")
            logger.warning(f"Config file not found: {self.config_path}, using defaults")
            return {}

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'level.smoothing_alpha')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def validate(self) -> None:
        """Validate configuration values"""
        alpha = self.get('level.smoothing_alpha')
        if alpha is not None and not 0 <= alpha <= 1:
            raise ValueError(f"Invalid smoothing_alpha: {alpha}, must be in [0, 1]")

        min_db = self.get('level.min_db', 0.0)
        max_db = self.get('level.max_db', 120.0)
        if not 0.0 <= min_db < max_db <= 120.0:
            raise ValueError(f"Invalid decibel range: [{min_db}, {max_db}], must lie within [0, 120]")

        sea_level = self.get('sensor.sea_level_pressure')
        if sea_level is not None and not (math.isfinite(sea_level) and sea_level > 0):
            raise ValueError(f"Invalid sea_level_pressure: {sea_level}, must be positive")

        poll_interval = self.get('sensor.poll_interval')
        if poll_interval is not None and poll_interval <= 0:
            raise ValueError(f"Invalid poll_interval: {poll_interval}, must be positive")

        # Check Redis connection
        redis_url = self.get('redis.url')
        if not redis_url:
            raise ValueError("Redis URL not configured")


# Global config instance
config = Config()
