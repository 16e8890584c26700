"""
Observability infrastructure with OpenTelemetry and structlog.

Provides the ``trace_operation`` decorator used by the analysis pipeline and
route handlers, plus structured logging configuration.
"""

from __future__ import annotations

import atexit
import functools
import inspect
import logging
import threading
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from bias_detector.config.loader import get_config

__all__ = (
    "configure_logging",
    "get_trace_context",
    "init_observability",
    "shutdown_observability",
    "trace_operation",
)

# Context variable for trace correlation
_trace_context: ContextVar[dict[str, str] | None] = ContextVar(
    "trace_context", default=None
)

_tracer_provider: TracerProvider | None = None
_initialized = False
_init_lock = threading.Lock()
_shutdown_registered = False


def _register_shutdown_hook() -> None:
    global _shutdown_registered
    if _shutdown_registered:
        return
    atexit.register(shutdown_observability)
    _shutdown_registered = True


def _get_tracer() -> trace.Tracer:
    # Falls back to the API no-op tracer until a provider is installed.
    return trace.get_tracer("bias_detector")


def _init_tracing(service_name: str, sample_rate: float, config: Any) -> None:
    """Install an SDK tracer provider exporting to the console."""
    global _tracer_provider
    try:
        resource = Resource.create(
            {
                "service.name": service_name,
                "deployment.environment": config.core.env,
            }
        )
        provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(sample_rate),
        )
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        logging.info("OpenTelemetry tracing initialized (sample_rate=%.2f)", sample_rate)
    except Exception:
        logging.warning("Failed to initialize tracing", exc_info=True)


def _bind_trace_context(logger, method_name, event_dict):
    """A structlog processor to inject the current trace context into log records."""
    ctx = _trace_context.get()
    if ctx:
        event_dict["trace_id"] = ctx.get("trace_id")
        event_dict["span_id"] = ctx.get("span_id")
    return event_dict


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure stdlib logging and structlog.

    JSON lines for services; a console renderer for interactive CLI use.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _bind_trace_context,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def init_observability(
    service_name: str = "bias-detector",
    enable_tracing: bool | None = None,
    sample_rate: float = 1.0,
) -> None:
    """
    Initialize observability stack.

    * Configure structured logging
    * Install the OTel tracer provider when tracing is enabled
    """
    global _initialized

    with _init_lock:
        if _initialized:
            return

        config = get_config()
        configure_logging(config.system.log_level, config.system.json_logs)

        if enable_tracing is None:
            enable_tracing = config.system.enable_tracing
        if enable_tracing:
            _init_tracing(service_name, max(0.0, min(sample_rate, 1.0)), config)

        _initialized = True
        _register_shutdown_hook()


def shutdown_observability() -> None:
    """Flush and shutdown the tracer provider."""
    if _tracer_provider is not None:
        try:
            _tracer_provider.shutdown()
        except Exception:
            logging.warning("Failed to shutdown tracer provider", exc_info=True)


def _enter_span(span: Any, span_attributes: dict[str, Any]) -> Any:
    for key, value in span_attributes.items():
        span.set_attribute(key, value)
    span_context = span.get_span_context()
    return _trace_context.set(
        {
            "trace_id": format(span_context.trace_id, "032x"),
            "span_id": format(span_context.span_id, "016x"),
        }
    )


def trace_operation(operation_name: str, **span_attributes):
    """
    Decorator to trace function execution.

    * Starts span
    * Binds trace context
    * Records exceptions
    """

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with _get_tracer().start_as_current_span(operation_name) as span:
                    token = _enter_span(span, span_attributes)
                    try:
                        result = await func(*args, **kwargs)
                        span.set_status(Status(StatusCode.OK))
                        return result
                    except Exception as e:
                        span.set_status(Status(StatusCode.ERROR))
                        span.record_exception(e)
                        raise
                    finally:
                        _trace_context.reset(token)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with _get_tracer().start_as_current_span(operation_name) as span:
                token = _enter_span(span, span_attributes)
                try:
                    result = func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR))
                    span.record_exception(e)
                    raise
                finally:
                    _trace_context.reset(token)

        return wrapper

    return decorator


def get_trace_context() -> dict[str, str]:
    """
    Get current trace context for log correlation.
    """
    return _trace_context.get() or {}
