"""
Bias Analysis Orchestrator.

Drives one analysis run as an explicit state machine:

    INVOKE_1 -> EXTRACT_PARSE_1 -> (SUCCESS | REPAIR_PARSE_1 -> (SUCCESS |
    INVOKE_2 -> EXTRACT_PARSE_2 -> (SUCCESS | REPAIR_PARSE_2 -> (SUCCESS |
    FAILED))))

The second invocation asks the model to reformat its own first answer. At
most two model invocations happen per run and no state is shared between
runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from bias_detector.analysis.normalizer import normalize_analysis
from bias_detector.common.exceptions import (
    ModelOutputError,
    NoCandidatesError,
    ValidationError,
)
from bias_detector.domain_models.analysis import (
    BiasAnalysis,
    ModelResponse,
    ParseFailure,
    ParseResult,
    ParseSuccess,
)
from bias_detector.llm.parsing import ParseError, extract_json, repair_json, strict_parse
from bias_detector.observability import trace_operation

logger = logging.getLogger(__name__)

MAX_INVOCATIONS = 2
RAW_LOG_PREVIEW_CHARS = 500


class AnalysisState(str, Enum):
    INVOKE_1 = "INVOKE_1"
    EXTRACT_PARSE_1 = "EXTRACT_PARSE_1"
    REPAIR_PARSE_1 = "REPAIR_PARSE_1"
    INVOKE_2 = "INVOKE_2"
    EXTRACT_PARSE_2 = "EXTRACT_PARSE_2"
    REPAIR_PARSE_2 = "REPAIR_PARSE_2"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


_PASS_STATES = {
    1: (
        AnalysisState.INVOKE_1,
        AnalysisState.EXTRACT_PARSE_1,
        AnalysisState.REPAIR_PARSE_1,
    ),
    2: (
        AnalysisState.INVOKE_2,
        AnalysisState.EXTRACT_PARSE_2,
        AnalysisState.REPAIR_PARSE_2,
    ),
}


class ModelInvoker(Protocol):
    async def invoke(
        self, url: str, reformulate_from: str | None = None
    ) -> ModelResponse: ...


@dataclass(frozen=True)
class AnalysisOutcome:
    """Successful run: the analysis, retrieval diagnostics and call count."""

    analysis: BiasAnalysis
    debug: dict[str, Any]
    invocations: int
    states: tuple[AnalysisState, ...] = field(default=())

    def to_wire(self) -> dict[str, Any]:
        return {**self.analysis.to_wire(), "debug": self.debug}


def parse_analysis(combined_text: str) -> ParseResult:
    """
    Extract, strictly parse and normalize one pass of model output.

    Falls back to a single syntactic repair when the strict parse fails.
    """
    extracted = extract_json(combined_text)
    try:
        return ParseSuccess(normalize_analysis(strict_parse(extracted)))
    except ParseError as exc:
        logger.debug("Strict parse failed: %s", exc.message)

    try:
        repaired = repair_json(extracted)
        return ParseSuccess(normalize_analysis(strict_parse(repaired)), repaired=True)
    except ParseError as exc:
        return ParseFailure(exc.message)


def _preview(text: str) -> str:
    if len(text) <= RAW_LOG_PREVIEW_CHARS:
        return text
    return text[:RAW_LOG_PREVIEW_CHARS] + "...[truncated]"


class AnalysisOrchestrator:
    """Run the prompt, parse, repair and reformat loop for one article URL."""

    def __init__(self, invoker: ModelInvoker) -> None:
        self.invoker = invoker

    @trace_operation("analysis_run")
    async def run(self, url: str) -> AnalysisOutcome:
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL is required", field="url", rule="required")
        url = url.strip()

        states: list[AnalysisState] = []
        raw_passes: list[str] = []
        invocations = 0
        seed: str | None = None

        for pass_number in range(1, MAX_INVOCATIONS + 1):
            invoke_state, parse_state, repair_state = _PASS_STATES[pass_number]
            reformat_pass = pass_number > 1

            states.append(invoke_state)
            invocations += 1
            if invocations > MAX_INVOCATIONS:
                raise RuntimeError("Model invocation bound exceeded")
            response = await self.invoker.invoke(url, reformulate_from=seed)

            if not response.candidates:
                states.append(AnalysisState.FAILED)
                logger.warning(
                    "Model returned no candidates (pass=%d, url=%s)", pass_number, url
                )
                raise NoCandidatesError(reformat_pass=reformat_pass)

            combined = response.combined_text()
            raw_passes.append(combined)
            logger.debug("Pass %d raw output: %s", pass_number, _preview(combined))

            states.append(parse_state)
            result = parse_analysis(combined)
            if isinstance(result, ParseSuccess):
                if result.repaired:
                    states.append(repair_state)
                states.append(AnalysisState.SUCCESS)
                logger.info(
                    "Analysis succeeded (pass=%d, repaired=%s, score=%r)",
                    pass_number,
                    result.repaired,
                    result.analysis.bias_score,
                )
                return AnalysisOutcome(
                    analysis=result.analysis,
                    debug=response.debug(),
                    invocations=invocations,
                    states=tuple(states),
                )

            states.append(repair_state)
            logger.info(
                "Pass %d output unparsable after repair: %s", pass_number, result.reason
            )
            seed = combined or None

        states.append(AnalysisState.FAILED)
        logger.error("Model output invalid after %d passes (url=%s)", invocations, url)
        raise ModelOutputError(
            raw_first_pass=raw_passes[0],
            raw_second_pass=raw_passes[-1],
        )
