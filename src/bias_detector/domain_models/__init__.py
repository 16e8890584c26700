"""
Domain Models Package.

Contains Pydantic models for bias analyses and the transient model response.
"""

from bias_detector.domain_models.analysis import (
    JUSTIFICATION_KEYS,
    BiasAnalysis,
    Candidate,
    EvidenceItem,
    Justification,
    JustificationSection,
    ModelResponse,
    ParseFailure,
    ParseResult,
    ParseSuccess,
)

__all__ = [
    "JUSTIFICATION_KEYS",
    "BiasAnalysis",
    "Candidate",
    "EvidenceItem",
    "Justification",
    "JustificationSection",
    "ModelResponse",
    "ParseFailure",
    "ParseResult",
    "ParseSuccess",
]
