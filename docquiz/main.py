"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic_settings import BaseSettings
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from docquiz.api.routes import quiz, sessions
from docquiz.exceptions import DocQuizError, GenerationFailedError
from docquiz.services.generation_client import (
    GEMINI_OPENAI_BASE_URL,
    GenerationClient,
    GenerationConfig,
)
from docquiz.services.session_store import SessionStore
from docquiz.utils.logger import logger
from docquiz.utils.tracer import initialize_tracing, shutdown_tracing


class Settings(BaseSettings):
    """Application settings."""

    gemini_api_key: str = ""
    gemini_base_url: str = GEMINI_OPENAI_BASE_URL
    llm_model: str = "gemini-2.0-flash"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Sampling parameters, identical for every request
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 64
    max_output_tokens: int = 65536

    # Upper bound for one oracle call; there are no retries
    generation_timeout_seconds: float = 120.0

    # Delay between revealed characters (0 = one event loop tick)
    reveal_interval_ms: int = 0

    max_file_size_mb: int = 50

    # Idle sessions are ended after this long (0 = never)
    session_ttl_seconds: int = 3600

    # OpenTelemetry tracing configuration
    tracing_enabled: bool = False
    otlp_endpoint: str = ""  # empty = console exporter

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = False
        extra = "ignore"


def build_generation_client(app_settings: Settings) -> GenerationClient:
    """Create the generation client; raises MissingCredentialError without a key."""
    return GenerationClient(
        api_key=app_settings.gemini_api_key,
        base_url=app_settings.gemini_base_url,
        config=GenerationConfig(
            model=app_settings.llm_model,
            temperature=app_settings.temperature,
            top_p=app_settings.top_p,
            top_k=app_settings.top_k,
            max_output_tokens=app_settings.max_output_tokens,
        ),
        timeout_seconds=app_settings.generation_timeout_seconds,
    )


# Global services (initialized in lifespan)
settings: Optional[Settings] = None
session_store: Optional[SessionStore] = None
generation_client: Optional[GenerationClient] = None
tracer_provider = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global settings, session_store, generation_client, tracer_provider

    logger.info("Starting document quiz service")
    settings = Settings()

    tracer_provider = initialize_tracing(
        service_name="docquiz",
        service_version="1.0.0",
        otlp_endpoint=settings.otlp_endpoint or None,
        tracing_enabled=settings.tracing_enabled,
    )

    session_store = SessionStore(
        reveal_interval_seconds=settings.reveal_interval_ms / 1000,
        ttl_seconds=settings.session_ttl_seconds or None,
    )

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; quiz requests will fail until it is configured")

    yield

    logger.info("Shutting down document quiz service")
    session_store.clear()
    if generation_client:
        await generation_client.close()
        generation_client = None
    if tracer_provider:
        shutdown_tracing(tracer_provider)


app = FastAPI(
    title="Document Quiz",
    description="Generate a quiz from a document and ask follow-up questions about it",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(DocQuizError)
async def docquiz_exception_handler(request: Request, exc: DocQuizError):
    """Map pipeline errors to their status codes."""
    message = str(exc)
    if isinstance(exc, GenerationFailedError):
        # Oracle details are logged by the client, never returned
        message = "Failed to generate a response."
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "error_type": type(exc).__name__},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "error_type": "HTTPError"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Report malformed requests as client errors.

    Missing or empty fields are a 400, the same status the pipeline uses for
    its own input validation.
    """
    errors = exc.errors()
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg', 'invalid')}" if location else error.get("msg", "invalid"))

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "; ".join(messages) or "Invalid request", "error_type": "ValidationError"},
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Document Quiz"}


@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(quiz.router, prefix="/api", tags=["quiz"])
app.include_router(sessions.router, prefix="/api", tags=["sessions"])


def run():
    import uvicorn

    app_settings = Settings()
    uvicorn.run(app, host=app_settings.api_host, port=app_settings.api_port)


if __name__ == "__main__":
    run()
