"""
FastAPI Entry Point.

Provides:
- Correlation ID middleware
- Structured JSON logging middleware
- Global BiasDetectorError exception handling
- /health and /version endpoints
- JWT security integration
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from bias_detector import __version__
from bias_detector.api import routes_analyses, routes_analyze, routes_search
from bias_detector.api.errors import (
    bias_detector_error_handler,
    generic_exception_handler,
    http_exception_handler,
    request_validation_handler,
)
from bias_detector.common.exceptions import BiasDetectorError
from bias_detector.config.loader import get_config
from bias_detector.context import correlation_id_ctx
from bias_detector.db.session import init_db, reset_engine
from bias_detector.observability import get_trace_context, init_observability
from bias_detector.security.jwt_decoder import build_jwt_decoder
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

APP_VERSION = __version__
APP_NAME = "Bias Detector"

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Middleware: Correlation ID
# ---------------------------------------------------------------------------
class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract or generate a correlation ID for request tracing.

    Accepts X-Correlation-ID header or generates a new UUID.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID")
        if not correlation_id:
            correlation_id = str(uuid.uuid4())

        token = correlation_id_ctx.set(correlation_id)
        # Routes read it from request.state without touching contextvars.
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            correlation_id_ctx.reset(token)


# ---------------------------------------------------------------------------
# Middleware: Structured JSON Logging
# ---------------------------------------------------------------------------
class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured JSON logging of requests.

    One line per request with correlation_id, user_id, status and duration.
    Never logs tokens, article text or raw model output.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.time()
        correlation_id = correlation_id_ctx.get(None)
        trace_ctx = get_trace_context()

        try:
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            log_entry = {
                "event": "request_completed",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "correlation_id": correlation_id,
                "user_id": getattr(request.state, "user_id", None),
                "trace_id": trace_ctx.get("trace_id"),
                "span_id": trace_ctx.get("span_id"),
            }

            if response.status_code >= 500:
                logger.error(json.dumps(log_entry))
            elif response.status_code >= 400:
                logger.warning(json.dumps(log_entry))
            else:
                logger.info(json.dumps(log_entry))

            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            log_entry = {
                "event": "request_failed",
                "method": request.method,
                "path": request.url.path,
                "error_type": type(e).__name__,
                "duration_ms": round(duration_ms, 2),
                "correlation_id": correlation_id,
                "user_id": getattr(request.state, "user_id", None),
            }
            logger.error(json.dumps(log_entry))
            raise


# ---------------------------------------------------------------------------
# Lifespan Manager
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager.

    - Initialize observability and the schema on startup
    - Close the PubMed HTTP client and dispose the engine on shutdown
    """
    config = get_config()
    init_observability(service_name="bias-detector")
    logger.info("Starting %s v%s (%s)", APP_NAME, APP_VERSION, config.core.env)

    try:
        init_db()
    except Exception:
        logger.exception("Database initialization failed")
        raise

    yield

    pubmed_client = getattr(app.state, "pubmed_client", None)
    if pubmed_client is not None:
        await pubmed_client.aclose()
    reset_engine()
    logger.info("Shutting down %s", APP_NAME)


# ---------------------------------------------------------------------------
# Application Factory
# ---------------------------------------------------------------------------
def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=APP_NAME,
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    config = get_config()

    # Middleware executes in reverse order of registration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)
    # Outermost so the correlation ID is set before anything logs
    app.add_middleware(CorrelationIdMiddleware)

    app.state.config = config
    app.state.jwt_decoder = build_jwt_decoder(config)

    app.add_exception_handler(BiasDetectorError, bias_detector_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(routes_analyze.router, prefix="/api", tags=["analyze"])
    app.include_router(routes_analyses.router, prefix="/api", tags=["analyses"])
    app.include_router(routes_search.router, prefix="/api", tags=["search"])

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "environment": config.core.env,
        }

    @app.get("/version", tags=["system"])
    async def version_info() -> dict[str, Any]:
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "model": config.gemini.model,
            "environment": config.core.env,
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
