import json

import httpx
import jwt
import pytest
from bias_detector.analysis.orchestrator import AnalysisOrchestrator
from bias_detector.api.dependencies import get_orchestrator, get_pubmed_client
from bias_detector.config.models import PubMedConfig
from bias_detector.db.session import get_db
from bias_detector.domain_models.analysis import Candidate, ModelResponse
from bias_detector.literature.pubmed import PubMedClient
from conftest import TEST_SECRET
from fastapi.testclient import TestClient

import main

ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/12345678/"
VALID_OUTPUT = json.dumps(
    {
        "biasScore": "2",
        "biasMeaning": "Minor Bias",
        "justification": {
            "sampleRepresentation": {
                "summary": "Balanced enrolment.",
                "evidence": [{"quote": "52% female", "section": "Results"}],
            }
        },
    }
)


def _response(text: str) -> ModelResponse:
    return ModelResponse(candidates=(Candidate(parts=(text,)),))


class ScriptedInvoker:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)

    async def invoke(self, url, reformulate_from=None):
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _auth(sub: str = "user-1") -> dict[str, str]:
    token = jwt.encode({"sub": sub}, TEST_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(test_config, session_factory):
    application = main.create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def _use_invoker(app, *outcomes):
    orchestrator = AnalysisOrchestrator(ScriptedInvoker(*outcomes))
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator


# ---------------------------------------------------------------------------
# /api/analyze
# ---------------------------------------------------------------------------
def test_analyze_returns_normalized_analysis(app, client):
    _use_invoker(app, _response(VALID_OUTPUT))

    response = client.post("/api/analyze", json={"url": ARTICLE_URL}, headers=_auth())

    assert response.status_code == 200
    body = response.json()
    assert body["biasScore"] == "2"
    assert body["biasMeaning"] == "Minor Bias"
    assert body["justification"]["sampleRepresentation"]["evidence"] == [
        {"quote": "52% female", "section": "Results"}
    ]
    assert body["justification"]["methodologicalFairness"] == {"summary": "", "evidence": []}
    assert body["debug"] == {"grounding": None, "urlMeta": None}
    assert response.headers["X-Correlation-ID"]


def test_analyze_requires_bearer_token(app, client):
    _use_invoker(app, _response(VALID_OUTPUT))

    response = client.post("/api/analyze", json={"url": ARTICLE_URL})

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_analyze_rejects_forged_token(app, client):
    _use_invoker(app, _response(VALID_OUTPUT))
    forged = jwt.encode({"sub": "x"}, "another-secret-that-is-long-enough!!", algorithm="HS256")

    response = client.post(
        "/api/analyze",
        json={"url": ARTICLE_URL},
        headers={"Authorization": f"Bearer {forged}"},
    )

    assert response.status_code == 401


@pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": 42}, ["not", "an", "object"]])
def test_analyze_requires_url(app, client, payload):
    _use_invoker(app)

    response = client.post("/api/analyze", json=payload, headers=_auth())

    assert response.status_code == 400
    assert response.json()["error"] == "URL is required"


def test_analyze_rejects_malformed_json(app, client):
    _use_invoker(app)

    response = client.post(
        "/api/analyze",
        content=b"{not json",
        headers={**_auth(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_analyze_reports_both_raw_passes(app, client):
    _use_invoker(app, _response("no json here"), _response("still none"))

    response = client.post("/api/analyze", json={"url": ARTICLE_URL}, headers=_auth())

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Invalid JSON from model after two attempts."
    assert body["rawFirstPass"] == "no json here"
    assert body["rawSecondPass"] == "still none"


def test_analyze_reports_empty_candidates(app, client):
    _use_invoker(app, ModelResponse(candidates=()))

    response = client.post("/api/analyze", json={"url": ARTICLE_URL}, headers=_auth())

    assert response.status_code == 502
    assert response.json()["error"] == "No candidates returned from model."


def test_analyze_wraps_provider_failures(app, client):
    _use_invoker(app, RuntimeError("upstream exploded"))

    response = client.post("/api/analyze", json={"url": ARTICLE_URL}, headers=_auth())

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to analyze"
    assert body["details"] == "upstream exploded"


# ---------------------------------------------------------------------------
# /api/analyses
# ---------------------------------------------------------------------------
SAVE_PAYLOAD = {
    "url": ARTICLE_URL,
    "title": "Statins in women",
    "biasScore": "4",
    "biasMeaning": "Significant Bias",
    "justification": {"studyOutcomes": {"summary": "Male-only endpoints.", "evidence": [{}]}},
}


def test_save_then_list(client):
    created = client.post("/api/analyses", json=SAVE_PAYLOAD, headers=_auth())

    assert created.status_code == 201
    record_id = created.json()["data"]["id"]

    listed = client.get("/api/analyses", headers=_auth())

    assert listed.status_code == 200
    data = listed.json()["data"]
    assert [item["id"] for item in data] == [record_id]
    item = data[0]
    assert item["url"] == ARTICLE_URL
    assert item["title"] == "Statins in women"
    assert item["biasScore"] == "4"
    assert item["justification"]["studyOutcomes"] == {
        "summary": "Male-only endpoints.",
        "evidence": [],
    }
    assert set(item["createdAt"]) == {"_seconds", "_nanoseconds"}


def test_resave_same_url_updates(client):
    first = client.post("/api/analyses", json=SAVE_PAYLOAD, headers=_auth())
    second = client.post(
        "/api/analyses",
        json={**SAVE_PAYLOAD, "biasScore": "1", "biasMeaning": "Not Biased", "title": None},
        headers=_auth(),
    )

    assert second.status_code == 200
    assert second.json()["data"]["id"] == first.json()["data"]["id"]
    data = client.get("/api/analyses", headers=_auth()).json()["data"]
    assert len(data) == 1
    assert data[0]["biasMeaning"] == "Not Biased"
    assert data[0]["title"] == "Statins in women"


def test_analyses_are_private_to_each_user(client):
    client.post("/api/analyses", json=SAVE_PAYLOAD, headers=_auth("user-1"))

    response = client.get("/api/analyses", headers=_auth("user-2"))

    assert response.json() == {"success": True, "data": []}


@pytest.mark.parametrize(
    "override,message",
    [
        ({"url": ""}, "url is required"),
        ({"biasScore": 4}, "biasScore must be a string"),
        ({"biasMeaning": ""}, "biasMeaning is required"),
        ({"justification": "text"}, "justification object is required"),
    ],
)
def test_save_validation_messages(client, override, message):
    response = client.post("/api/analyses", json={**SAVE_PAYLOAD, **override}, headers=_auth())

    assert response.status_code == 400
    assert response.json()["error"] == message


def test_analyses_require_auth(client):
    assert client.get("/api/analyses").status_code == 401
    assert client.post("/api/analyses", json=SAVE_PAYLOAD).status_code == 401


# ---------------------------------------------------------------------------
# /api/search
# ---------------------------------------------------------------------------
def _use_pubmed(app, handler):
    config = PubMedConfig(base_url="https://eutils.test/", max_attempts=1, api_key=None)
    pubmed = PubMedClient(
        config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    app.dependency_overrides[get_pubmed_client] = lambda: pubmed


def test_search_is_public_and_returns_hits(app, client):
    xml = (
        "<PubmedArticleSet><PubmedArticle><MedlineCitation><PMID>7</PMID>"
        "<Article><ArticleTitle>Aspirin trial</ArticleTitle></Article>"
        "</MedlineCitation></PubmedArticle></PubmedArticleSet>"
    )

    def handler(request):
        if request.url.path.endswith("esearch.fcgi"):
            return httpx.Response(200, json={"esearchresult": {"idlist": ["7"]}})
        return httpx.Response(200, content=xml.encode())

    _use_pubmed(app, handler)

    response = client.get("/api/search", params={"q": "aspirin", "limit": 3})

    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert body["results"][0]["url"] == "https://pubmed.ncbi.nlm.nih.gov/7/"
    assert body["results"][0]["pubDate"] == "Unknown date"


def test_search_requires_query(app, client):
    _use_pubmed(app, lambda request: httpx.Response(500))

    response = client.get("/api/search", params={"q": " "})

    assert response.status_code == 400
    assert response.json()["error"] == "Please enter a search term."


def test_search_upstream_failure(app, client):
    _use_pubmed(app, lambda request: httpx.Response(500))

    response = client.get("/api/search", params={"q": "aspirin"})

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to search. Please try again."


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------
def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["environment"] == "test"
