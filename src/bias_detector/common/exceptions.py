"""
BiasDetectorError hierarchy.

Provides specific, actionable exception types with context preservation
and programmatic error handling support.
"""

from __future__ import annotations

from typing import Any

SENSITIVE_CONTEXT_KEYS = {"raw_output", "raw_first_pass", "raw_second_pass", "token"}
REDACTED_VALUE = "[REDACTED]"


def _redact_context(context: dict[str, Any]) -> dict[str, Any]:
    redacted: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(key, str) and key.lower() in SENSITIVE_CONTEXT_KEYS:
            redacted[key] = REDACTED_VALUE
        else:
            redacted[key] = value
    return redacted


def _pop_duplicate_kwargs(kwargs: dict[str, Any], keys: tuple[str, ...]) -> None:
    for key in keys:
        kwargs.pop(key, None)


class BiasDetectorError(Exception):
    """
    Base class for all application errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "NO_CANDIDATES")
        context: Additional context dict for debugging
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = dict(context) if context is not None else {}
        if kwargs:
            self.context.update(kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/reporting."""
        safe_context = _redact_context(dict(self.context)) if self.context else {}
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": safe_context,
        }


class ConfigurationError(BiasDetectorError):
    """Configuration issues: missing/invalid settings."""


class ValidationError(BiasDetectorError):
    """
    Input validation failures.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        rule: str | None = None,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("field", "rule"))
        super().__init__(message, **kwargs)
        self.field = field
        self.rule = rule


class SecurityError(BiasDetectorError):
    """
    Security violations (unauthorized access, misconfigured identity).
    """

    def __init__(
        self,
        message: str,
        threat_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("threat_type",))
        super().__init__(message, threat_type=threat_type, **kwargs)
        self.threat_type = threat_type


class AuthenticationError(SecurityError):
    """Bearer credential missing, malformed, expired or not verifiable."""

    def __init__(self, message: str = "Unauthorized", **kwargs: Any) -> None:
        _pop_duplicate_kwargs(kwargs, ("threat_type",))
        kwargs.setdefault("error_code", "UNAUTHORIZED")
        super().__init__(message, threat_type="auth_invalid", **kwargs)


class ProviderError(BiasDetectorError):
    """
    External provider (LLM, literature index) operation failures.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retryable: bool = False,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("provider", "retryable"))
        super().__init__(message, provider=provider, retryable=retryable, **kwargs)
        self.provider = provider
        self.retryable = retryable


class ProviderTimeoutError(ProviderError):
    """The provider did not answer before the configured deadline."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        timeout_seconds: float | None = None,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("provider", "timeout_seconds", "retryable"))
        kwargs.setdefault("error_code", "PROVIDER_TIMEOUT")
        super().__init__(
            message,
            provider=provider,
            retryable=False,
            timeout_seconds=timeout_seconds,
            **kwargs,
        )
        self.timeout_seconds = timeout_seconds


class NoCandidatesError(ProviderError):
    """
    The model returned an empty candidate list.

    Raised once per run at most; the first pass and the reformat pass carry
    distinct messages so operators can tell them apart.
    """

    def __init__(
        self,
        message: str | None = None,
        reformat_pass: bool = False,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("reformat_pass", "retryable"))
        if message is None:
            message = (
                "No candidates returned (reformat pass)."
                if reformat_pass
                else "No candidates returned from model."
            )
        kwargs.setdefault(
            "error_code",
            "NO_CANDIDATES_REFORMAT" if reformat_pass else "NO_CANDIDATES",
        )
        super().__init__(
            message, retryable=False, reformat_pass=reformat_pass, **kwargs
        )
        self.reformat_pass = reformat_pass


class LLMOutputSchemaError(BiasDetectorError):
    """
    LLM output did not match expected schema after repair attempts.
    """

    def __init__(
        self,
        message: str,
        schema_name: str | None = None,
        raw_output: str | None = None,
        repair_attempts: int = 0,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("schema_name", "raw_output", "repair_attempts"))
        super().__init__(
            message,
            schema_name=schema_name,
            raw_output=raw_output,
            repair_attempts=repair_attempts,
            **kwargs,
        )
        self.schema_name = schema_name
        self.raw_output = raw_output
        self.repair_attempts = repair_attempts


class ModelOutputError(LLMOutputSchemaError):
    """
    Both the first pass and the reformat pass produced unparsable output.

    Carries both raw combined texts so operators can inspect model drift.
    """

    def __init__(
        self,
        message: str = "Invalid JSON from model after two attempts.",
        raw_first_pass: str = "",
        raw_second_pass: str = "",
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(
            kwargs, ("raw_first_pass", "raw_second_pass", "raw_output", "schema_name")
        )
        kwargs.setdefault("error_code", "INVALID_MODEL_JSON")
        kwargs.setdefault("repair_attempts", 2)
        super().__init__(
            message,
            schema_name="BiasAnalysis",
            raw_output=raw_second_pass,
            raw_first_pass=raw_first_pass,
            raw_second_pass=raw_second_pass,
            **kwargs,
        )
        self.raw_first_pass = raw_first_pass
        self.raw_second_pass = raw_second_pass


class RetrievalError(BiasDetectorError):
    """
    Literature search failures.
    """

    def __init__(
        self,
        message: str,
        query: str | None = None,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("query",))
        super().__init__(message, query=query, **kwargs)
        self.query = query


class TransactionError(BiasDetectorError):
    """
    Analysis store write/read failures.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        **kwargs: Any,
    ) -> None:
        _pop_duplicate_kwargs(kwargs, ("operation",))
        super().__init__(message, operation=operation, **kwargs)
        self.operation = operation
