"""
Shared FastAPI dependencies for the API routers.

Collaborators are built once per application and cached on ``app.state``;
tests replace them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from bias_detector.analysis.orchestrator import AnalysisOrchestrator
from bias_detector.config.loader import get_config
from bias_detector.db.repository import AnalysisRepository
from bias_detector.db.session import get_db
from bias_detector.literature.pubmed import PubMedClient
from bias_detector.llm.client import GeminiInvoker, GeminiSettings
from fastapi import Depends, Request
from sqlalchemy.orm import Session


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        settings = GeminiSettings.from_config(get_config().gemini)
        orchestrator = AnalysisOrchestrator(GeminiInvoker(settings))
        request.app.state.orchestrator = orchestrator
    return orchestrator


def get_pubmed_client(request: Request) -> PubMedClient:
    client = getattr(request.app.state, "pubmed_client", None)
    if client is None:
        client = PubMedClient(get_config().pubmed)
        request.app.state.pubmed_client = client
    return client


def get_repository(db: Session = Depends(get_db)) -> AnalysisRepository:
    return AnalysisRepository(db)
