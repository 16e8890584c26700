"""
Bias Detector CLI Entry Point.

Command-line access to the analysis pipeline, PubMed search, the API
server and schema setup.
"""

import asyncio
import json

import structlog
import typer
from bias_detector.common.exceptions import BiasDetectorError, ModelOutputError

# Configure structlog for CLI
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(help="Gender-bias analysis for medical research articles")
logger = structlog.get_logger()

SECTION_TITLES = {
    "sampleRepresentation": "Sample representation",
    "inclusionInAnalysis": "Inclusion in analysis",
    "studyOutcomes": "Study outcomes",
    "methodologicalFairness": "Methodological fairness",
}


def _print_analysis(wire: dict) -> None:
    print(f"\nBias score: {wire['biasScore'] or '?'}  {wire['biasMeaning']}\n")
    for key, title in SECTION_TITLES.items():
        section = wire["justification"][key]
        print(f"## {title}")
        print(section["summary"] or "(no summary)")
        for item in section["evidence"]:
            label = f" [{item['section']}]" if item["section"] else ""
            print(f'  > "{item["quote"]}"{label}')
        print("")


@app.command()
def analyze(
    url: str = typer.Argument(..., help="Article URL"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON result"),
):
    """
    Analyze an article for gender bias.
    """
    from bias_detector.analysis.orchestrator import AnalysisOrchestrator
    from bias_detector.config.loader import get_config
    from bias_detector.llm.client import GeminiInvoker, GeminiSettings

    settings = GeminiSettings.from_config(get_config().gemini)
    orchestrator = AnalysisOrchestrator(GeminiInvoker(settings))
    logger.info("analyze_command_start", url=url, model=settings.model)

    try:
        outcome = asyncio.run(orchestrator.run(url))
    except ModelOutputError as e:
        logger.error("analyze_failed", error=e.message)
        print(f"\n❌ {e.message}")
        print(f"\nFirst pass:\n{e.raw_first_pass}\n\nSecond pass:\n{e.raw_second_pass}")
        raise typer.Exit(code=1)
    except BiasDetectorError as e:
        logger.error("analyze_failed", error=e.message, error_code=e.error_code)
        print(f"\n❌ {e.message}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.error("analyze_failed", error=str(e))
        print(f"\n❌ Failed to analyze: {e}")
        raise typer.Exit(code=1)

    if as_json:
        print(json.dumps(outcome.to_wire(), indent=2))
    else:
        _print_analysis(outcome.analysis.to_wire())
    logger.info("analyze_command_done", invocations=outcome.invocations)


@app.command()
def search(
    query: str = typer.Argument(..., help="PubMed search query"),
    limit: int = typer.Option(10, "--limit", "-k", help="Number of results"),
):
    """
    Search PubMed for articles to analyze.
    """
    from bias_detector.config.loader import get_config
    from bias_detector.literature.pubmed import PubMedClient

    async def _run():
        client = PubMedClient(get_config().pubmed)
        try:
            return await client.search(query, limit=limit)
        finally:
            await client.aclose()

    logger.info("search_command_start", query=query)
    try:
        result = asyncio.run(_run())
    except BiasDetectorError as e:
        logger.error("search_failed", error=e.message)
        print(f"\n❌ {e.message}")
        raise typer.Exit(code=1)

    if not result.articles:
        print(f"\n{result.message}")
        return

    print(f"\n🔎 PubMed results for: '{query}' ({len(result.articles)} hits)\n")
    for i, article in enumerate(result.articles, 1):
        print(f"{i}. {article.title}")
        print(f"    {article.authors} | {article.journal} | {article.pub_date}")
        print(f"    {article.url}")
        print("")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
):
    """
    Run the HTTP API with uvicorn.
    """
    import uvicorn

    logger.info("serve_command_start", host=host, port=port)
    uvicorn.run("main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db_command():
    """
    Create the analysis store schema.
    """
    from bias_detector.db.session import init_db

    try:
        init_db()
    except Exception as e:
        logger.error("init_db_failed", error=str(e))
        print(f"\n❌ Database initialization failed: {e}")
        raise typer.Exit(code=1)
    print("✓ Database schema ready")


if __name__ == "__main__":
    app()
