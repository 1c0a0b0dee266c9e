"""Pytest configuration and fixtures."""
import pytest
from unittest.mock import Mock, AsyncMock

from context_engine.models.retrieval import SearchResult
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.llm_service import LLMService
from context_engine.services.retrieval_engine import RetrievalEngine


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _topic_embedding(text: str):
    if "fruit" in text.lower():
        return [1.0, 0.0]
    return [0.0, 1.0]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def topic_embedder():
    """Two-dimensional embedding: fruit-related text vs everything else."""
    return _topic_embedding


@pytest.fixture
def store():
    """Store with default chunking (short texts become a single chunk)."""
    return ChunkStore()


@pytest.fixture
def small_store():
    """Store with small windows so test texts span several chunks."""
    return ChunkStore(chunk_size=100, chunk_overlap=20)


@pytest.fixture
def engine(store):
    return RetrievalEngine(store)


@pytest.fixture
def long_text():
    """Roughly 540 characters of repeated sentences."""
    return "Alpha beta gamma. " * 30


@pytest.fixture
def ranked(store):
    """Build SearchResults for a list of (filename, text) pairs, in the given order."""

    def _build(*items):
        results = []
        for position, (filename, text) in enumerate(items):
            document = store.ingest(filename, text, "text/plain", len(text))
            for chunk in document.chunks:
                results.append(
                    SearchResult(document=document, chunk=chunk, relevance_score=10.0 - position)
                )
        return results

    return _build


@pytest.fixture
def mock_llm_service():
    """Mock LLM service."""
    service = Mock(spec=LLMService)
    service.model = "test-model"
    service.provider = "test-provider"
    service.generate = AsyncMock(
        return_value={
            "answer": "Apples are the fruit most often mentioned in the uploaded documents.",
            "token_usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
            "response_time_ms": 500.0,
        }
    )
    service.close = AsyncMock()
    return service
