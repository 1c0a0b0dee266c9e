"""FastAPI application entry point."""
import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from pydantic_settings import BaseSettings, SettingsConfigDict
from starlette.responses import Response

from context_engine.api.routes import ask, cache, documents, metrics, search
from context_engine.exceptions import ServiceUnavailableError
from context_engine.models.retrieval import RankingStrategy
from context_engine.services.chat_service import ChatService
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.context_assembler import ContextAssembler
from context_engine.services.document_service import DocumentService
from context_engine.services.embedding_service import EmbeddingService
from context_engine.services.llm_service import LLMService
from context_engine.services.response_cache import ResponseCache
from context_engine.services.retrieval_engine import RetrievalEngine
from context_engine.utils.logger import logger
from context_engine.utils.tracer import initialize_tracing, shutdown_tracing


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Chunking
    chunk_size: int = 2000
    chunk_overlap: int = 200

    # Retrieval
    ranking_strategy: RankingStrategy = RankingStrategy.HYBRID
    max_results: int = 5
    min_relevance: float = 0.3
    keyword_weight: float = 0.5
    semantic_weight: float = 0.5
    default_token_budget: int = 4000

    # Response cache
    cache_ttl_seconds: int = 3600
    cache_max_entries: int = 1000
    cache_min_payload_length: int = 50
    cache_sweep_interval_seconds: int = 1800

    # Document upload limits
    max_file_size_mb: int = 50

    # Embeddings (requires the "embeddings" extra)
    embeddings_enabled: bool = False
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Generation provider (OpenAI-compatible)
    llm_api_key: str = ""
    llm_api_url: str = "https://api.deepseek.com/v1/chat/completions"
    llm_model: str = "deepseek-chat"
    llm_provider: str = "deepseek"

    # OpenTelemetry tracing configuration
    tracing_enabled: bool = True
    otlp_endpoint: str = ""  # empty = console exporter


# Global services (initialized in lifespan)
settings: Settings = None
chunk_store: ChunkStore = None
retrieval_engine: RetrievalEngine = None
context_assembler: ContextAssembler = None
response_cache: ResponseCache = None
document_service: DocumentService = None
llm_service: Optional[LLMService] = None
chat_service: Optional[ChatService] = None
tracer_provider = None


async def sweep_cache_periodically(cache: ResponseCache, interval_seconds: float) -> None:
    """Drop expired cache entries every interval until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        cache.sweep_expired()


def _create_embedder(app_settings: Settings):
    if not app_settings.embeddings_enabled:
        return None
    try:
        return EmbeddingService(model_name=app_settings.embedding_model).embed
    except ServiceUnavailableError as e:
        logger.warning(f"Embeddings disabled: {str(e)}")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global settings, chunk_store, retrieval_engine, context_assembler, response_cache
    global document_service, llm_service, chat_service, tracer_provider

    # Startup
    logger.info("Starting Document Context Engine")
    settings = Settings()

    tracer_provider = initialize_tracing(
        service_name="document-context-engine",
        service_version="1.0.0",
        otlp_endpoint=settings.otlp_endpoint if settings.otlp_endpoint else None,
        tracing_enabled=settings.tracing_enabled,
    )

    embedder = _create_embedder(settings)
    chunk_store = ChunkStore(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        embedder=embedder,
    )
    retrieval_engine = RetrievalEngine(
        chunk_store,
        embedder=embedder,
        keyword_weight=settings.keyword_weight,
        semantic_weight=settings.semantic_weight,
    )
    context_assembler = ContextAssembler()
    response_cache = ResponseCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
        min_payload_length=settings.cache_min_payload_length,
    )
    document_service = DocumentService(chunk_store, max_file_size_mb=settings.max_file_size_mb)

    llm_service = None
    chat_service = None
    if settings.llm_api_key:
        llm_service = LLMService(
            api_key=settings.llm_api_key,
            api_url=settings.llm_api_url,
            model=settings.llm_model,
            provider=settings.llm_provider,
        )
        chat_service = ChatService(
            retrieval_engine,
            context_assembler,
            response_cache,
            llm_service,
            max_results=settings.max_results,
            min_relevance=settings.min_relevance,
            default_token_budget=settings.default_token_budget,
        )
    else:
        logger.warning("LLM_API_KEY not set; /api/ask is disabled")

    sweep_task = asyncio.create_task(
        sweep_cache_periodically(response_cache, settings.cache_sweep_interval_seconds)
    )

    logger.info(
        f"All services initialized (strategy={settings.ranking_strategy.value}, "
        f"embeddings={'on' if embedder else 'off'})"
    )

    yield

    # Shutdown
    logger.info("Shutting down Document Context Engine")
    sweep_task.cancel()
    with suppress(asyncio.CancelledError):
        await sweep_task
    if llm_service:
        await llm_service.close()
    if tracer_provider:
        shutdown_tracing(tracer_provider)


app = FastAPI(
    title="Document Context Engine",
    description="Document chunking, retrieval and context assembly for LLM prompts",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle validation errors with better error messages.

    Specifically handles JSON decode errors from invalid control characters.
    """
    errors = exc.errors()

    for error in errors:
        if error.get("type") == "json_invalid":
            ctx = error.get("ctx", {})
            if "Invalid control character" in str(ctx.get("error", "")):
                return JSONResponse(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    content={
                        "detail": "Invalid JSON: Control characters detected in request body.",
                        "error": "json_parse_error",
                        "hint": "Remove special characters from the request or use proper JSON encoding.",
                    },
                )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(errors)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Document Context Engine"}


@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(documents.router, prefix="/api", tags=["documents"])
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(ask.router, prefix="/api", tags=["ask"])
app.include_router(cache.router, prefix="/api", tags=["cache"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])


if __name__ == "__main__":
    import uvicorn

    app_settings = Settings()
    uvicorn.run(app, host=app_settings.api_host, port=app_settings.api_port)
