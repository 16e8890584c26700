"""
Configuration loader for Bias Detector.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from bias_detector.common.exceptions import ConfigurationError
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models import (
    CoreConfig,
    DatabaseConfig,
    GeminiConfig,
    PubMedConfig,
    SecurityConfig,
    SystemConfig,
    _unwrap_secret,
)

load_dotenv()


logger = logging.getLogger(__name__)


class BiasDetectorConfig(BaseModel):
    """
    Centralized configuration for Bias Detector.

    All sub-configs are Pydantic models with validation.
    """

    core: CoreConfig = Field(default_factory=CoreConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pubmed: PubMedConfig = Field(default_factory=PubMedConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    model_config = {"extra": "forbid"}

    @property
    def SECRET_KEY(self) -> str:
        """HS256 secret for dev/test token verification."""
        return _unwrap_secret(self.security.secret_key) or ""

    @property
    def is_prod(self) -> bool:
        return self.core.env == "prod"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display (secrets stay masked)."""
        return self.model_dump()

    @classmethod
    def load(cls, path: Path | None = None) -> BiasDetectorConfig:
        """
        Load the configuration.

        If path is None, creates config from environment variables.
        If path is provided, loads from JSON file with env defaults for
        anything the file leaves out.
        """
        if path is None:
            try:
                return cls()
            except Exception as e:
                raise ConfigurationError(
                    f"Configuration error: {e}\n\n"
                    "Please ensure all required environment variables are set in your .env file."
                ) from e

        if not path.exists():
            return cls()

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Corrupt configuration file at {path}",
                error_code="CONFIG_CORRUPT",
            ) from e
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid configuration file at {path}: {e}",
                error_code="CONFIG_INVALID",
            ) from e


_config: BiasDetectorConfig | None = None
_config_lock = threading.RLock()


def get_config() -> BiasDetectorConfig:
    """
    Get the global configuration instance (thread-safe singleton pattern).

    Uses double-checked locking so only the first caller pays for loading.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = BiasDetectorConfig.load()
        return _config


def reset_config() -> None:
    """
    Reset the global configuration instance (mainly for testing).
    """
    global _config
    with _config_lock:
        _config = None


def set_config(config: BiasDetectorConfig) -> None:
    """
    Set the global configuration instance (mainly for testing).
    """
    global _config
    with _config_lock:
        _config = config
