"""
Schema normalizer for decoded model output.

Coerces any decoded JSON value into a well-formed ``BiasAnalysis``. Total:
missing or mistyped fields fall back to empty defaults, never to errors.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from bias_detector.domain_models.analysis import (
    BiasAnalysis,
    EvidenceItem,
    Justification,
    JustificationSection,
)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def coerce_bias_score(value: Any) -> str:
    """
    Render ``biasScore`` as text.

    Text passes through, finite numbers use their shortest form (``2.0``
    becomes ``"2"``) and everything else becomes ``""``.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return ""


def normalize_evidence(value: Any) -> tuple[EvidenceItem, ...]:
    """Keep entries carrying a text quote or section, in their original order."""
    if not isinstance(value, list):
        return ()
    items = []
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        quote = entry.get("quote")
        section = entry.get("section")
        if not isinstance(quote, str) and not isinstance(section, str):
            continue
        items.append(EvidenceItem(quote=_text(quote), section=_text(section)))
    return tuple(items)


def normalize_section(value: Any) -> JustificationSection:
    section = _mapping(value)
    return JustificationSection(
        summary=_text(section.get("summary")),
        evidence=normalize_evidence(section.get("evidence")),
    )


def normalize_justification(value: Any) -> Justification:
    raw = _mapping(value)
    return Justification(
        sample_representation=normalize_section(raw.get("sampleRepresentation")),
        inclusion_in_analysis=normalize_section(raw.get("inclusionInAnalysis")),
        study_outcomes=normalize_section(raw.get("studyOutcomes")),
        methodological_fairness=normalize_section(raw.get("methodologicalFairness")),
    )


def normalize_analysis(value: Any) -> BiasAnalysis:
    """Coerce a decoded JSON value of any shape into a ``BiasAnalysis``."""
    raw = _mapping(value)
    return BiasAnalysis(
        bias_score=coerce_bias_score(raw.get("biasScore")),
        bias_meaning=_text(raw.get("biasMeaning")),
        justification=normalize_justification(raw.get("justification")),
    )
