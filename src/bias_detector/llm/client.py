"""
Gemini model invoker.

Sends the bias analysis prompt to Gemini with URL-context retrieval and
Google Search grounding enabled. One call per ``invoke``; retries are the
orchestrator's concern.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from bias_detector.common.exceptions import ConfigurationError, ProviderTimeoutError
from bias_detector.config.models import GeminiConfig, _unwrap_secret
from bias_detector.domain_models.analysis import ModelResponse
from bias_detector.prompts import construct_prompt_messages
from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"


@dataclass(frozen=True)
class GeminiSettings:
    """Explicit invocation settings; no process-wide client state."""

    api_key: str | None = None
    model: str = "gemini-2.5-flash"
    temperature: float = 0.3
    timeout_seconds: float = 120.0
    enable_url_context: bool = True
    enable_google_search: bool = True

    @classmethod
    def from_config(cls, config: GeminiConfig) -> GeminiSettings:
        return cls(
            api_key=_unwrap_secret(config.api_key),
            model=config.model,
            temperature=config.temperature,
            timeout_seconds=config.timeout_seconds,
            enable_url_context=config.enable_url_context,
            enable_google_search=config.enable_google_search,
        )

    def __repr__(self) -> str:
        return (
            f"GeminiSettings(model={self.model!r}, temperature={self.temperature}, "
            f"timeout_seconds={self.timeout_seconds}, api_key='[REDACTED]')"
        )


class GeminiInvoker:
    """
    Issue a single generation request for an article URL.

    The ``google.genai`` client is created on first use unless one is
    injected (tests pass a mock exposing ``aio.models.generate_content``).
    """

    def __init__(self, settings: GeminiSettings, client: Any | None = None) -> None:
        self.settings = settings
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.settings.api_key:
                raise ConfigurationError(
                    "GEMINI_API_KEY is not configured",
                    error_code="MISSING_API_KEY",
                )
            self._client = genai.Client(api_key=self.settings.api_key)
        return self._client

    def _tools(self) -> list[types.Tool]:
        tools: list[types.Tool] = []
        if self.settings.enable_url_context:
            tools.append(types.Tool(url_context=types.UrlContext()))
        if self.settings.enable_google_search:
            tools.append(types.Tool(google_search=types.GoogleSearch()))
        return tools

    def build_request(
        self, url: str, reformulate_from: str | None = None
    ) -> tuple[list[types.Content], types.GenerateContentConfig]:
        """Assemble the contents and generation config for one call."""
        contents = [
            types.Content(role=message["role"], parts=[types.Part(text=message["text"])])
            for message in construct_prompt_messages(url, reformulate_from)
        ]
        config = types.GenerateContentConfig(
            tools=self._tools() or None,
            temperature=self.settings.temperature,
        )
        return contents, config

    async def invoke(
        self, url: str, reformulate_from: str | None = None
    ) -> ModelResponse:
        """
        Call the model once.

        An empty candidate list is returned as-is. Transport errors propagate;
        exceeding the deadline raises ``ProviderTimeoutError``.
        """
        contents, config = self.build_request(url, reformulate_from)
        client = self._get_client()
        pass_name = "reformat" if reformulate_from else "analyze"

        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.settings.model,
                    contents=contents,
                    config=config,
                ),
                timeout=self.settings.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Gemini %s pass exceeded %.1fs deadline",
                pass_name,
                self.settings.timeout_seconds,
            )
            raise ProviderTimeoutError(
                f"Model call exceeded {self.settings.timeout_seconds:g}s deadline",
                provider=PROVIDER_NAME,
                timeout_seconds=self.settings.timeout_seconds,
            ) from exc

        response = ModelResponse.from_genai(raw)
        logger.info(
            "Gemini %s pass returned %d candidate(s) in %.0fms",
            pass_name,
            len(response.candidates),
            (time.perf_counter() - started) * 1000,
        )
        return response
