"""
Literature Search API Routes.

Public PubMed search; each hit carries a URL accepted by /analyze.
"""

import logging

from bias_detector.api.dependencies import get_pubmed_client
from bias_detector.api.models import SearchResponse
from bias_detector.literature.pubmed import PubMedClient
from bias_detector.observability import trace_operation
from fastapi import APIRouter, Depends, Query, Request

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/search", response_model=SearchResponse)
@trace_operation("api_search")
async def search_endpoint(
    http_request: Request,
    q: str = Query(default=""),
    limit: int = Query(default=10, ge=1, le=100),
    client: PubMedClient = Depends(get_pubmed_client),
) -> SearchResponse:
    result = await client.search(q, limit=limit)
    return SearchResponse(
        correlation_id=getattr(http_request.state, "correlation_id", None),
        query=result.query,
        results=[article.model_dump(by_alias=True) for article in result.articles],
        total_count=len(result.articles),
        message=result.message,
    )
