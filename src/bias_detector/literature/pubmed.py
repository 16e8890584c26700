"""
PubMed literature search over NCBI E-utilities.

``esearch`` resolves a query to PMIDs, ``efetch`` returns the article
records as XML. Each parsed record carries a public URL that can be fed
straight into the bias analysis.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Any

import httpx
from bias_detector.common.exceptions import RetrievalError, ValidationError
from bias_detector.config.models import PubMedConfig, _unwrap_secret
from bias_detector.observability import trace_operation
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

MAX_AUTHORS = 3
EMPTY_QUERY_MESSAGE = "Please enter a search term."
NO_RESULTS_MESSAGE = "No results found for your search."
SEARCH_FAILED_MESSAGE = "Failed to search. Please try again."


class PubMedArticle(BaseModel):
    """A search hit, shaped for display and for analysis by URL."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pmid: str
    title: str
    authors: str = "Unknown authors"
    journal: str = "Unknown journal"
    pub_date: str = Field(default="Unknown date", alias="pubDate")
    abstract: str | None = None
    url: str


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    articles: list[PubMedArticle] = Field(default_factory=list)
    message: str | None = None


def _element_text(element: ET.Element | None) -> str:
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def _format_authors(article: ET.Element) -> str:
    names = []
    for author in article.iter("Author"):
        last = (author.findtext("LastName") or "").strip()
        fore = (author.findtext("ForeName") or "").strip()
        if last and fore:
            names.append(f"{fore} {last}")
        if len(names) == MAX_AUTHORS:
            break
    return ", ".join(names) if names else "Unknown authors"


def parse_pubmed_xml(
    xml_text: str | bytes,
    url_template: str = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
) -> list[PubMedArticle]:
    """
    Parse an ``efetch`` PubmedArticleSet into article records.

    Records lacking a PMID or a title are skipped.
    """
    root = ET.fromstring(xml_text)
    articles: list[PubMedArticle] = []
    for article in root.iter("PubmedArticle"):
        pmid = (article.findtext(".//PMID") or "").strip()
        title = _element_text(article.find(".//ArticleTitle"))
        if not pmid or not title:
            continue

        journal = _element_text(article.find(".//Journal/Title"))
        year = (article.findtext(".//PubDate/Year") or "").strip()
        abstract = _element_text(article.find(".//Abstract/AbstractText"))

        articles.append(
            PubMedArticle(
                pmid=pmid,
                title=title,
                authors=_format_authors(article),
                journal=journal or "Unknown journal",
                pub_date=year or "Unknown date",
                abstract=abstract or None,
                url=url_template.format(pmid=pmid),
            )
        )
    return articles


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    return isinstance(exc, httpx.TransportError)


class PubMedClient:
    """Async E-utilities client; retries idempotent GETs on transient errors."""

    def __init__(
        self, config: PubMedConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _endpoint(self, name: str) -> str:
        return f"{str(self.config.base_url).rstrip('/')}/{name}"

    def _common_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"db": "pubmed", "tool": self.config.tool}
        if self.config.email:
            params["email"] = self.config.email
        api_key = _unwrap_secret(self.config.api_key)
        if api_key:
            params["api_key"] = api_key
        return params

    async def _get(self, name: str, params: dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            stop=stop_after_attempt(self.config.max_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self.client.get(
                    self._endpoint(name), params={**self._common_params(), **params}
                )
                response.raise_for_status()
        return response

    async def search_ids(self, query: str, limit: int) -> list[str]:
        response = await self._get(
            "esearch.fcgi",
            {"term": query, "retmax": limit, "retmode": "json"},
        )
        payload = response.json()
        ids = (payload.get("esearchresult") or {}).get("idlist") or []
        return [str(pmid) for pmid in ids]

    async def fetch_articles(self, pmids: list[str]) -> list[PubMedArticle]:
        response = await self._get(
            "efetch.fcgi",
            {"id": ",".join(pmids), "retmode": "xml"},
        )
        return parse_pubmed_xml(response.content, self.config.article_url_template)

    @trace_operation("pubmed_search")
    async def search(self, query: str, limit: int | None = None) -> SearchResult:
        """
        Search PubMed and return parsed article records.

        Raises:
            ValidationError: blank query.
            RetrievalError: upstream failure after retries.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError(EMPTY_QUERY_MESSAGE, field="q", rule="required")

        retmax = max(1, min(limit or self.config.retmax, 100))
        try:
            pmids = await self.search_ids(query, retmax)
            if not pmids:
                return SearchResult(query=query, articles=[], message=NO_RESULTS_MESSAGE)
            articles = await self.fetch_articles(pmids)
        except (httpx.HTTPError, ValueError, ET.ParseError) as exc:
            logger.warning("PubMed search failed: %s", type(exc).__name__)
            raise RetrievalError(
                SEARCH_FAILED_MESSAGE, query=query, error_code="PUBMED_UNAVAILABLE"
            ) from exc

        logger.info("PubMed search returned %d article(s)", len(articles))
        message = None if articles else NO_RESULTS_MESSAGE
        return SearchResult(query=query, articles=articles, message=message)
