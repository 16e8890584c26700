"""
Analyze API Routes.

POST /analyze runs the bias analysis pipeline for one article URL.
"""

import logging
from typing import Any

from bias_detector.analysis.orchestrator import AnalysisOrchestrator
from bias_detector.api.dependencies import get_orchestrator
from bias_detector.api.errors import create_error_response
from bias_detector.api.models import AnalyzeRequest
from bias_detector.common.exceptions import (
    ModelOutputError,
    NoCandidatesError,
    ValidationError,
)
from bias_detector.observability import trace_operation
from bias_detector.security.dependencies import get_current_user
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/analyze")
@trace_operation("api_analyze")
async def analyze_endpoint(
    http_request: Request,
    payload: Any = Body(default=None),
    user_id: str = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> Any:
    """
    Analyze an article for gender bias.

    Returns the normalized analysis plus ``debug`` retrieval metadata.
    """
    correlation_id = getattr(http_request.state, "correlation_id", None)
    request = AnalyzeRequest.from_payload(payload)

    try:
        outcome = await orchestrator.run(request.url)
    except (ValidationError, NoCandidatesError, ModelOutputError):
        raise
    except Exception as exc:
        logger.exception(
            "Analyze failed", extra={"correlation_id": correlation_id}
        )
        return create_error_response(
            status_code=500,
            message="Failed to analyze",
            error_code=getattr(exc, "error_code", None) or "ANALYZE_FAILED",
            extra={"details": getattr(exc, "message", None) or str(exc)},
        )

    logger.info(
        "Analyze completed in %d invocation(s)",
        outcome.invocations,
        extra={"correlation_id": correlation_id},
    )
    return JSONResponse(content=outcome.to_wire())
