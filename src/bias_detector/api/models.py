"""
API Request/Response Models.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from bias_detector.common.exceptions import ValidationError
from bias_detector.db.models import StoredAnalysis
from pydantic import BaseModel, ConfigDict, Field


# -----------------------------------------------------------------------------
# Analyze API Models
# -----------------------------------------------------------------------------
class AnalyzeRequest(BaseModel):
    """Analyze request payload."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    url: str = Field(..., description="Article URL to analyze")

    @classmethod
    def from_payload(cls, payload: Any) -> AnalyzeRequest:
        url = payload.get("url") if isinstance(payload, Mapping) else None
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL is required", field="url", rule="required")
        return cls(url=url.strip())


# -----------------------------------------------------------------------------
# Analyses (saved) API Models
# -----------------------------------------------------------------------------
class SaveAnalysisRequest(BaseModel):
    """Save (upsert) request payload; wire names are camelCase."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    url: str
    title: str | None = None
    bias_score: str = Field(..., alias="biasScore")
    bias_meaning: str = Field(..., alias="biasMeaning")
    justification: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: Any) -> SaveAnalysisRequest:
        body: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}

        url = body.get("url")
        if not isinstance(url, str) or not url:
            raise ValidationError("url is required", field="url", rule="required")
        bias_score = body.get("biasScore")
        if not isinstance(bias_score, str):
            raise ValidationError(
                "biasScore must be a string", field="biasScore", rule="type"
            )
        bias_meaning = body.get("biasMeaning")
        if not isinstance(bias_meaning, str) or not bias_meaning:
            raise ValidationError(
                "biasMeaning is required", field="biasMeaning", rule="required"
            )
        justification = body.get("justification")
        if not isinstance(justification, Mapping):
            raise ValidationError(
                "justification object is required",
                field="justification",
                rule="type",
            )
        title = body.get("title")

        return cls(
            url=url,
            title=title if isinstance(title, str) else None,
            bias_score=bias_score,
            bias_meaning=bias_meaning,
            justification=dict(justification),
        )


def timestamp_to_wire(value: datetime | None) -> dict[str, int] | None:
    """Render a timestamp as ``{_seconds, _nanoseconds}``."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    seconds = int(value.timestamp())
    return {"_seconds": seconds, "_nanoseconds": value.microsecond * 1000}


def stored_analysis_to_wire(row: StoredAnalysis) -> dict[str, Any]:
    return {
        "id": row.id,
        "url": row.url,
        "title": row.title,
        "biasScore": str(row.bias_score),
        "biasMeaning": row.bias_meaning,
        "justification": row.justification,
        "createdAt": timestamp_to_wire(row.created_at),
    }


# -----------------------------------------------------------------------------
# Search API Models
# -----------------------------------------------------------------------------
class SearchResponse(BaseModel):
    """Search response payload."""

    correlation_id: str | None = None
    query: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)
    message: str | None = None
