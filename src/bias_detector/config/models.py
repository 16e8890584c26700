"""
Configuration Models.

All configuration models use Pydantic for validation benefits.
"""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    Field,
    SecretStr,
    field_validator,
)

ENV_PREFIX = "BIASDETECTOR_"

# -----------------------------------------------------------------------------
# Environment Variable Helper
# -----------------------------------------------------------------------------


def _env(key: str, default: Any, value_type: type = str) -> Any:
    """
    Get environment variable with BIASDETECTOR_ prefix fallback.

    Args:
        key: Environment variable name (without prefix)
        default: Default value if not set
        value_type: Type to convert value to

    Returns:
        Environment variable value or default
    """
    env_key_prefixed = f"{ENV_PREFIX}{key}"

    value = os.getenv(env_key_prefixed)
    source_key = env_key_prefixed if value is not None else None
    if value is None:
        value = os.getenv(key)
        if value is not None:
            source_key = key

    if value is None or value == "":
        return default
    try:
        if value_type is bool:
            normalized = str(value).strip().lower()
            if normalized in ("true", "1", "yes", "on"):
                return True
            if normalized in ("false", "0", "no", "off"):
                return False
            raise ValueError("Invalid boolean value")
        if value_type is int:
            return int(value)
        if value_type is float:
            return float(value)
        return value
    except (ValueError, TypeError) as exc:
        key_name = source_key or key
        raise ValueError(
            f"Invalid value for {key_name}; expected {value_type.__name__}."
        ) from exc


def _unwrap_secret(value: SecretStr | str | None) -> str | None:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


# -----------------------------------------------------------------------------
# Core Configuration
# -----------------------------------------------------------------------------


class CoreConfig(BaseModel):
    """Core application configuration."""

    env: Literal["dev", "test", "staging", "prod"] = Field(
        default_factory=lambda: _env("ENV", "dev"),
        description="Environment name",
    )

    @field_validator("env", mode="before")
    def normalize_env(cls, value: str) -> str:
        normalized = str(value).strip().lower()
        if normalized == "production":
            return "prod"
        if normalized in ("development", "local"):
            return "dev"
        return normalized

    model_config = {"extra": "forbid"}


# -----------------------------------------------------------------------------
# Gemini Configuration
# -----------------------------------------------------------------------------


class GeminiConfig(BaseModel):
    """Generative model settings for the bias analysis call."""

    api_key: SecretStr | None = Field(
        default_factory=lambda: _env("GEMINI_API_KEY", None),
        description="Gemini Developer API key",
    )
    model: str = Field(
        default_factory=lambda: _env("GEMINI_MODEL", "gemini-2.5-flash"),
        description="Model used for analysis and reformat passes",
    )
    temperature: float = Field(
        default_factory=lambda: _env("GEMINI_TEMPERATURE", 0.3, float),
        ge=0.0,
        le=2.0,
        description="Sampling temperature (kept low for determinism)",
    )
    timeout_seconds: float = Field(
        default_factory=lambda: _env("GEMINI_TIMEOUT_SECONDS", 120.0, float),
        gt=0.0,
        le=900.0,
        description="Deadline for a single model invocation",
    )
    enable_url_context: bool = Field(
        default_factory=lambda: _env("GEMINI_URL_CONTEXT", True, bool),
        description="Enable the URL context retrieval tool",
    )
    enable_google_search: bool = Field(
        default_factory=lambda: _env("GEMINI_GOOGLE_SEARCH", True, bool),
        description="Enable the Google Search grounding tool",
    )

    model_config = {"extra": "forbid"}


# -----------------------------------------------------------------------------
# Database Configuration
# -----------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """Analysis store connection configuration."""

    url: str = Field(
        default_factory=lambda: _env("DB_URL", "sqlite:///./bias_detector.db"),
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default_factory=lambda: _env("DB_ECHO", False, bool),
        description="Log SQL statements",
    )

    @field_validator("url")
    def validate_url(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Database URL must not be empty.")
        return value.strip()

    model_config = {"extra": "forbid"}


# -----------------------------------------------------------------------------
# PubMed Configuration
# -----------------------------------------------------------------------------


class PubMedConfig(BaseModel):
    """NCBI E-utilities settings for literature search."""

    base_url: AnyHttpUrl = Field(
        default_factory=lambda: _env(
            "PUBMED_BASE_URL", "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/"
        ),
        validate_default=True,
        description="E-utilities base URL",
    )
    retmax: int = Field(
        default_factory=lambda: _env("PUBMED_RETMAX", 10, int),
        ge=1,
        le=100,
        description="Maximum number of PMIDs fetched per search",
    )
    timeout_seconds: float = Field(
        default_factory=lambda: _env("PUBMED_TIMEOUT_SECONDS", 15.0, float),
        gt=0.0,
        le=120.0,
        description="HTTP timeout for E-utilities calls",
    )
    max_attempts: int = Field(
        default_factory=lambda: _env("PUBMED_MAX_ATTEMPTS", 3, int),
        ge=1,
        le=10,
        description="Attempts per E-utilities request on transient failure",
    )
    api_key: SecretStr | None = Field(
        default_factory=lambda: _env("NCBI_API_KEY", None),
        description="Optional NCBI API key (raises rate limits)",
    )
    tool: str = Field(
        default_factory=lambda: _env("NCBI_TOOL", "bias-detector"),
        description="Tool name reported to NCBI",
    )
    email: str | None = Field(
        default_factory=lambda: _env("NCBI_EMAIL", None),
        description="Contact email reported to NCBI",
    )
    article_url_template: str = Field(
        default="https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
        description="Public URL for a PubMed record",
    )

    model_config = {"extra": "forbid"}


# -----------------------------------------------------------------------------
# Security Configuration
# -----------------------------------------------------------------------------


class SecurityConfig(BaseModel):
    """Bearer token verification settings."""

    jwks_url: str | None = Field(
        default_factory=lambda: _env("OIDC_JWKS_URL", None),
        description="JWKS endpoint for RS256 token verification",
    )
    audience: str | None = Field(
        default_factory=lambda: _env("OIDC_AUDIENCE", None),
        description="Expected token audience",
    )
    issuer: str | None = Field(
        default_factory=lambda: _env("OIDC_ISSUER", None),
        description="Expected token issuer",
    )
    secret_key: SecretStr = Field(
        default_factory=lambda: _env(
            "SECRET_KEY", "dev-secret-key-change-in-production"
        ),
        description="HS256 shared secret (dev/test only)",
    )
    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            part.strip()
            for part in _env(
                "ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
            ).split(",")
            if part.strip()
        ],
        description="CORS origins",
    )

    @field_validator("jwks_url")
    def validate_jwks_url(cls, value: str | None) -> str | None:
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("JWKS URL must start with http:// or https://")
        return value

    model_config = {"extra": "forbid"}


# -----------------------------------------------------------------------------
# System Configuration
# -----------------------------------------------------------------------------


class SystemConfig(BaseModel):
    """System-level configuration."""

    log_level: str = Field(
        default_factory=lambda: _env("LOG_LEVEL", "INFO"), description="Logging level"
    )
    json_logs: bool = Field(
        default_factory=lambda: _env("JSON_LOGS", True, bool),
        description="Render logs as JSON lines",
    )
    enable_tracing: bool = Field(
        default_factory=lambda: _env("OTEL_ENABLED", False, bool),
        description="Install an OpenTelemetry tracer provider",
    )

    @field_validator("log_level", mode="before")
    def normalize_log_level(cls, value: str) -> str:
        return str(value).strip().upper()

    model_config = {"extra": "forbid"}
