"""Retrieval, context and cache data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from context_engine.models.document import Chunk, Document


class RankingStrategy(str, Enum):
    """How chunk relevance is scored."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class SearchResult:
    """A ranked chunk together with its owning document."""

    document: Document
    chunk: Chunk
    relevance_score: float
    matched_terms: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContextPayload:
    """Assembled context block ready for prompt injection."""

    text: str
    included_chunk_ids: List[str]
    estimated_tokens: int

    @property
    def is_empty(self) -> bool:
        return not self.included_chunk_ids


@dataclass(frozen=True)
class CacheEntry:
    """A cached generation result."""

    key: str
    payload: str
    created_at: float
    model: str
    provider: str
