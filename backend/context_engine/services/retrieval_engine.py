"""Hybrid keyword and embedding-similarity search over the chunk store."""
import math
import time
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from opentelemetry import trace

from context_engine.exceptions import ConfigurationError
from context_engine.models.document import Chunk, ChunkType
from context_engine.models.retrieval import RankingStrategy, SearchResult
from context_engine.services.chunk_store import ChunkStore
from context_engine.utils.logger import logger
from context_engine.utils.metrics import SEARCHES, SEARCH_LATENCY


# Added to the keyword score when the whole query occurs verbatim
PHRASE_BONUS = 3
MIN_TOKEN_LENGTH = 3

tracer = trace.get_tracer(__name__)


def tokenize_query(query: str) -> List[str]:
    """Lower-cased whitespace tokens longer than two characters."""
    return [token.lower() for token in query.split() if len(token) >= MIN_TOKEN_LENGTH]


def keyword_score(content_lower: str, tokens: List[str], phrase: str) -> Tuple[int, List[str]]:
    """
    Count query tokens found in the content, plus the phrase bonus.

    Args:
        content_lower: Lower-cased chunk content
        tokens: Query tokens from tokenize_query
        phrase: Lower-cased, stripped query

    Returns:
        Tuple of (score, matched tokens)
    """
    matched = [token for token in tokens if token in content_lower]
    score = len(matched)
    if phrase and phrase in content_lower:
        score += PHRASE_BONUS
    return score, matched


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clipped to [0, 1]; 0 for mismatched or zero vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))


def parse_strategy(strategy: Union[str, RankingStrategy]) -> RankingStrategy:
    try:
        return RankingStrategy(strategy)
    except ValueError:
        raise ConfigurationError(
            f"Unknown ranking strategy '{strategy}'. "
            f"Supported: {', '.join(s.value for s in RankingStrategy)}"
        )


def parse_chunk_types(chunk_types: Iterable[Union[str, ChunkType]]) -> set:
    try:
        return {ChunkType(chunk_type) for chunk_type in chunk_types}
    except ValueError as e:
        raise ConfigurationError(f"Unknown chunk type filter: {str(e)}")


class RetrievalEngine:
    """Scores every stored chunk against a query and ranks the matches."""

    def __init__(
        self,
        store: ChunkStore,
        embedder: Optional[Callable[[str], Sequence[float]]] = None,
        keyword_weight: float = 0.5,
        semantic_weight: float = 0.5,
    ):
        """
        Initialize the retrieval engine.

        Args:
            store: Chunk store to search
            embedder: Optional callable used to embed queries
            keyword_weight: Weight of the normalized keyword score in hybrid ranking
            semantic_weight: Weight of the embedding similarity in hybrid ranking

        Raises:
            ConfigurationError: If a weight is negative or both are zero
        """
        if keyword_weight < 0 or semantic_weight < 0 or keyword_weight + semantic_weight == 0:
            raise ConfigurationError(
                f"Hybrid weights must be non-negative and not both zero, "
                f"got keyword={keyword_weight}, semantic={semantic_weight}"
            )
        self.store = store
        self.embedder = embedder
        self.keyword_weight = keyword_weight
        self.semantic_weight = semantic_weight

    def search(
        self,
        query: str,
        max_results: int = 5,
        min_relevance: Optional[float] = None,
        strategy: Union[str, RankingStrategy] = RankingStrategy.HYBRID,
        document_ids: Optional[Iterable[str]] = None,
        chunk_types: Optional[Iterable[Union[str, ChunkType]]] = None,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[SearchResult]:
        """
        Rank stored chunks against a query.

        Args:
            query: Search query
            max_results: Maximum number of results
            min_relevance: Drop results scoring below this value
            strategy: keyword, semantic or hybrid
            document_ids: Restrict the search to these documents
            chunk_types: Restrict the search to these chunk types
            query_embedding: Precomputed query embedding

        Returns:
            Results sorted by descending score; ties keep chunk creation order

        Raises:
            ConfigurationError: If max_results <= 0 or the strategy is unknown
        """
        if max_results <= 0:
            raise ConfigurationError(f"max_results must be positive, got {max_results}")
        strategy = parse_strategy(strategy)

        start_time = time.time()
        with tracer.start_as_current_span("retrieval.search") as span:
            span.set_attribute("retrieval.strategy", strategy.value)
            results = self._rank(
                query,
                max_results,
                min_relevance,
                strategy,
                set(document_ids) if document_ids is not None else None,
                parse_chunk_types(chunk_types) if chunk_types is not None else None,
                query_embedding,
            )
            span.set_attribute("retrieval.result_count", len(results))

        SEARCHES.labels(strategy=strategy.value).inc()
        SEARCH_LATENCY.observe(time.time() - start_time)
        logger.info(
            f"Search returned {len(results)} results",
            extra={"result_count": len(results), "strategy": strategy.value},
        )
        return results

    def _rank(
        self,
        query: str,
        max_results: int,
        min_relevance: Optional[float],
        strategy: RankingStrategy,
        document_ids: Optional[set],
        chunk_types: Optional[set],
        query_embedding: Optional[Sequence[float]],
    ) -> List[SearchResult]:
        phrase = query.lower().strip()
        if not phrase:
            return []
        tokens = tokenize_query(query)

        if strategy != RankingStrategy.KEYWORD and query_embedding is None:
            query_embedding = self._embed_query(query)

        scored: List[SearchResult] = []
        for document in self.store.list_documents():
            if document_ids is not None and document.id not in document_ids:
                continue
            for chunk in document.chunks:
                if chunk_types is not None and chunk.type not in chunk_types:
                    continue

                score, matched = self._score(chunk, tokens, phrase, strategy, query_embedding)
                if score <= 0:
                    continue
                if min_relevance is not None and score < min_relevance:
                    continue
                scored.append(
                    SearchResult(
                        document=document,
                        chunk=chunk,
                        relevance_score=score,
                        matched_terms=matched,
                    )
                )

        # sorted() is stable, so equal scores keep store iteration order
        scored = sorted(scored, key=lambda result: result.relevance_score, reverse=True)
        return scored[:max_results]

    def _score(
        self,
        chunk: Chunk,
        tokens: List[str],
        phrase: str,
        strategy: RankingStrategy,
        query_embedding: Optional[Sequence[float]],
    ) -> Tuple[float, List[str]]:
        raw, matched = keyword_score(chunk.content.lower(), tokens, phrase)

        if strategy == RankingStrategy.KEYWORD:
            return float(raw), matched

        similarity = None
        if query_embedding is not None and chunk.metadata.embedding is not None:
            similarity = cosine_similarity(query_embedding, chunk.metadata.embedding)

        if strategy == RankingStrategy.SEMANTIC:
            return (similarity or 0.0), matched

        normalized = raw / (len(tokens) + PHRASE_BONUS)
        if similarity is None:
            return normalized, matched

        total_weight = self.keyword_weight + self.semantic_weight
        blended = (self.keyword_weight * normalized + self.semantic_weight * similarity) / total_weight
        return blended, matched

    def _embed_query(self, query: str) -> Optional[Sequence[float]]:
        if self.embedder is None:
            return None
        try:
            return self.embedder(query)
        except Exception as e:
            logger.warning(f"Query embedding failed, ranking without similarity: {str(e)}")
            return None
