"""OpenTelemetry tracing for pipeline runs and oracle calls."""
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.openai import OpenAIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from docquiz.utils.logger import logger


SPAN_PREFIX = "docquiz"

# Provider for pipeline spans; None uses the global provider
_tracer_provider: Optional[TracerProvider] = None


def initialize_tracing(
    service_name: str = "docquiz",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    tracing_enabled: bool = True,
) -> Optional[TracerProvider]:
    """
    Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for traces
        service_version: Version of the service
        otlp_endpoint: Optional OTLP endpoint URL (e.g., http://localhost:4318/v1/traces)
                      If None, uses console exporter
        tracing_enabled: Enable/disable tracing

    Returns:
        TracerProvider instance if tracing is enabled, None otherwise
    """
    global _tracer_provider

    if not tracing_enabled:
        logger.info("Tracing is disabled")
        return None

    try:
        resource = Resource.create(
            {
                "service.name": service_name,
                "service.version": service_version,
            }
        )

        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)
        _tracer_provider = tracer_provider

        if otlp_endpoint:
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            logger.info(f"Tracing initialized with OTLP exporter: {otlp_endpoint}")
        else:
            exporter = ConsoleSpanExporter()
            logger.info("Tracing initialized with console exporter")

        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

        # The generation client talks to the oracle through the OpenAI SDK
        OpenAIInstrumentor().instrument()

        return tracer_provider

    except Exception as e:
        logger.error(f"Failed to initialize tracing: {str(e)}", exc_info=True)
        return None


def shutdown_tracing(tracer_provider: Optional[TracerProvider]) -> None:
    """Flush and shut down the tracer provider."""
    global _tracer_provider
    _tracer_provider = None

    if tracer_provider:
        try:
            tracer_provider.shutdown()
            logger.info("Tracing shutdown completed")
        except Exception as e:
            logger.warning(f"Error during tracing shutdown: {str(e)}")


def pipeline_attribute(name: str) -> str:
    return f"{SPAN_PREFIX}.{name}"


@contextmanager
def pipeline_span(operation: str, session_id: Optional[str] = None) -> Iterator[trace.Span]:
    """
    Open the span for one pipeline run.

    The span is named ``docquiz.<operation>`` and carries the session id and
    operation, so oracle calls made inside it are grouped per session.
    """
    tracer = trace.get_tracer("docquiz.pipeline", tracer_provider=_tracer_provider)
    attributes = {
        pipeline_attribute("operation"): operation,
        pipeline_attribute("session_id"): session_id or "",
    }
    with tracer.start_as_current_span(pipeline_attribute(operation), attributes=attributes) as span:
        yield span


def annotate_pipeline_span(**attributes) -> None:
    """Set ``docquiz.*`` attributes on the current pipeline span."""
    span = trace.get_current_span()
    for name, value in attributes.items():
        span.set_attribute(pipeline_attribute(name), value)
