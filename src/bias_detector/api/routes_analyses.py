"""
Saved Analyses API Routes.

GET lists the caller's analyses newest first; POST upserts one by URL.
"""

import logging
from typing import Any

from bias_detector.analysis.normalizer import normalize_justification
from bias_detector.api.dependencies import get_repository
from bias_detector.api.errors import create_error_response
from bias_detector.api.models import SaveAnalysisRequest, stored_analysis_to_wire
from bias_detector.common.exceptions import TransactionError
from bias_detector.db.repository import AnalysisRepository
from bias_detector.observability import trace_operation
from bias_detector.security.dependencies import get_current_user
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/analyses")
@trace_operation("api_list_analyses")
async def list_analyses(
    user_id: str = Depends(get_current_user),
    repository: AnalysisRepository = Depends(get_repository),
) -> Any:
    try:
        rows = repository.list_for_user(user_id)
    except TransactionError:
        logger.exception("Failed to list analyses")
        return create_error_response(
            500, "Internal Server Error", error_code="TRANSACTION_FAILED"
        )
    return {"success": True, "data": [stored_analysis_to_wire(row) for row in rows]}


@router.post("/analyses")
@trace_operation("api_save_analysis")
async def save_analysis(
    payload: Any = Body(default=None),
    user_id: str = Depends(get_current_user),
    repository: AnalysisRepository = Depends(get_repository),
) -> Any:
    request = SaveAnalysisRequest.from_payload(payload)
    justification = normalize_justification(request.justification).model_dump(
        mode="json", by_alias=True
    )

    try:
        result = repository.upsert(
            user_id,
            url=request.url,
            title=request.title,
            bias_score=request.bias_score,
            bias_meaning=request.bias_meaning,
            justification=justification,
        )
    except TransactionError:
        logger.exception("Failed to save analysis")
        return create_error_response(
            500, "Internal Server Error", error_code="TRANSACTION_FAILED"
        )

    return JSONResponse(
        status_code=201 if result.created else 200,
        content={"success": True, "data": {"id": result.id}},
    )
