"""Configuration package."""

from bias_detector.config.loader import (
    BiasDetectorConfig,
    get_config,
    reset_config,
    set_config,
)

__all__ = ["BiasDetectorConfig", "get_config", "reset_config", "set_config"]
