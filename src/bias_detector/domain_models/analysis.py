"""
Bias Analysis Domain Models.

Canonical records for the gender-bias assessment of a single article, the
transient model response they are parsed from, and the parse result union.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

JUSTIFICATION_KEYS = (
    "sampleRepresentation",
    "inclusionInAnalysis",
    "studyOutcomes",
    "methodologicalFairness",
)


class _Record(BaseModel):
    """Immutable record with camelCase wire names."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class EvidenceItem(_Record):
    """A quoted passage from the article and the section it came from."""

    quote: str = ""
    section: str = ""


class JustificationSection(_Record):
    """Summary and supporting evidence for one bias dimension."""

    summary: str = ""
    evidence: tuple[EvidenceItem, ...] = ()


class Justification(_Record):
    sample_representation: JustificationSection = Field(
        default_factory=JustificationSection
    )
    inclusion_in_analysis: JustificationSection = Field(
        default_factory=JustificationSection
    )
    study_outcomes: JustificationSection = Field(default_factory=JustificationSection)
    methodological_fairness: JustificationSection = Field(
        default_factory=JustificationSection
    )


class BiasAnalysis(_Record):
    """
    Canonical output of one analysis run.

    ``bias_score`` is opaque text; it is expected to hold "1".."5" but is
    never validated against that range.
    """

    bias_score: str = ""
    bias_meaning: str = ""
    justification: Justification = Field(default_factory=Justification)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, as returned to API clients."""
        return self.model_dump(mode="json", by_alias=True)


# -----------------------------------------------------------------------------
# Parse result
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ParseSuccess:
    analysis: BiasAnalysis
    repaired: bool = False
    ok: Literal[True] = True


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    ok: Literal[False] = False


ParseResult = ParseSuccess | ParseFailure


# -----------------------------------------------------------------------------
# Model response
# -----------------------------------------------------------------------------


def _metadata_to_plain(value: Any) -> Any:
    """Convert SDK metadata objects into JSON-friendly structures."""
    if value is None:
        return None
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump(mode="json", exclude_none=True)
    return value


@dataclass(frozen=True)
class Candidate:
    """One candidate answer: its text parts plus retrieval diagnostics."""

    parts: tuple[str, ...] = ()
    grounding_metadata: Any = None
    url_context_metadata: Any = None

    @property
    def combined_text(self) -> str:
        return "\n".join(self.parts)


@dataclass(frozen=True)
class ModelResponse:
    """Transient result of a single model invocation."""

    candidates: tuple[Candidate, ...] = ()
    text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def first(self) -> Candidate | None:
        return self.candidates[0] if self.candidates else None

    def combined_text(self) -> str:
        """
        Join the first candidate's text parts with newlines.

        Falls back to the top-level ``text`` when the candidate carries no
        text parts.
        """
        candidate = self.first
        combined = candidate.combined_text if candidate is not None else ""
        if not combined and self.text:
            return self.text
        return combined

    def debug(self) -> dict[str, Any]:
        candidate = self.first
        if candidate is None:
            return {"grounding": None, "urlMeta": None}
        return {
            "grounding": candidate.grounding_metadata,
            "urlMeta": candidate.url_context_metadata,
        }

    @classmethod
    def from_genai(cls, response: Any) -> ModelResponse:
        """Build from a ``google.genai`` ``GenerateContentResponse``."""
        candidates: list[Candidate] = []
        for raw in getattr(response, "candidates", None) or []:
            content = getattr(raw, "content", None)
            texts = tuple(
                part.text
                for part in (getattr(content, "parts", None) or [])
                if isinstance(getattr(part, "text", None), str)
            )
            candidates.append(
                Candidate(
                    parts=texts,
                    grounding_metadata=_metadata_to_plain(
                        getattr(raw, "grounding_metadata", None)
                    ),
                    url_context_metadata=_metadata_to_plain(
                        getattr(raw, "url_context_metadata", None)
                    ),
                )
            )

        text: str | None = None
        if candidates and not candidates[0].parts:
            try:
                text = response.text
            except (AttributeError, ValueError):
                text = None

        usage = _metadata_to_plain(getattr(response, "usage_metadata", None))
        return cls(
            candidates=tuple(candidates),
            text=text if isinstance(text, str) else None,
            metadata={"usage": usage} if usage else {},
        )
