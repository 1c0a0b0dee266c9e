"""Tests for chunk ranking."""
import pytest

from context_engine.exceptions import ConfigurationError
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.retrieval_engine import (
    RetrievalEngine,
    cosine_similarity,
    keyword_score,
    tokenize_query,
)


def _ingest(store, filename, text):
    return store.ingest(filename, text, "text/plain", len(text))


class TestKeywordRanking:
    """Tests for the keyword strategy."""

    def test_phrase_match_scores_bonus(self, store, engine):
        """A single-token query that appears verbatim scores 1 + 3."""
        apple = _ingest(store, "apple.txt", "I like apple pie.")
        _ingest(store, "banana.txt", "Bananas are yellow.")

        results = engine.search("apple", strategy="keyword")

        assert len(results) == 1
        assert results[0].document.id == apple.id
        assert results[0].relevance_score == 4.0
        assert results[0].matched_terms == ["apple"]

    def test_min_relevance_filters(self, store, engine):
        strong = _ingest(store, "tart.txt", "An apple tart recipe.")
        _ingest(store, "juice.txt", "Fresh apple juice.")

        results = engine.search("apple tart", strategy="keyword", min_relevance=2)

        assert [result.document.id for result in results] == [strong.id]
        assert results[0].relevance_score == 5.0

    def test_ties_keep_insertion_order(self, store, engine):
        first = _ingest(store, "red.txt", "A red apple.")
        second = _ingest(store, "green.txt", "A green apple.")

        results = engine.search("apple", strategy="keyword")

        assert [result.document.id for result in results] == [first.id, second.id]
        assert results[0].relevance_score == results[1].relevance_score

    def test_max_results_truncates(self, store, engine):
        for index in range(4):
            _ingest(store, f"{index}.txt", f"Apple number {index}.")

        assert len(engine.search("apple", strategy="keyword", max_results=2)) == 2

    def test_short_tokens_ignored(self):
        assert tokenize_query("An Apple of my EYE") == ["apple", "eye"]

    def test_keyword_score(self):
        assert keyword_score("apple pie and cream", ["apple", "cream"], "apple cream") == (2, ["apple", "cream"])

    def test_empty_query(self, store, engine):
        _ingest(store, "a.txt", "Anything at all.")
        assert engine.search("   ") == []


class TestFilters:
    """Tests for document and chunk type filters."""

    def test_document_filter(self, store, engine):
        _ingest(store, "a.txt", "Apple orchards in autumn.")
        wanted = _ingest(store, "b.txt", "Apple cider in winter.")

        results = engine.search("apple", strategy="keyword", document_ids=[wanted.id])

        assert [result.document.id for result in results] == [wanted.id]

    def test_chunk_type_filter(self, store, engine):
        heading = _ingest(store, "a.md", "# Apple varieties\nSome apple text.")
        _ingest(store, "b.txt", "apple plain sentence.")

        results = engine.search("apple", strategy="keyword", chunk_types=["heading"])

        assert [result.document.id for result in results] == [heading.id]


class TestSemanticRanking:
    """Tests for semantic and hybrid strategies."""

    @pytest.fixture
    def embedded_store(self, topic_embedder):
        return ChunkStore(embedder=topic_embedder)

    def test_semantic_uses_similarity(self, embedded_store, topic_embedder):
        engine = RetrievalEngine(embedded_store, embedder=topic_embedder)
        fruit = _ingest(embedded_store, "fruit.txt", "A fruit salad with mango.")
        _ingest(embedded_store, "car.txt", "A car engine manual.")

        results = engine.search("fruit", strategy="semantic")

        assert [result.document.id for result in results] == [fruit.id]
        assert results[0].relevance_score == pytest.approx(1.0)

    def test_hybrid_blends_scores(self, embedded_store, topic_embedder):
        engine = RetrievalEngine(embedded_store, embedder=topic_embedder)
        _ingest(embedded_store, "basket.txt", "A tropical fruit basket.")

        results = engine.search("sweet fruit", strategy="hybrid")

        # keyword 1 / (2 tokens + 3) = 0.2, similarity 1.0, equal weights
        assert results[0].relevance_score == pytest.approx(0.6)

    def test_hybrid_without_embeddings_uses_keywords(self, store, engine):
        _ingest(store, "apple.txt", "I like apple pie.")

        results = engine.search("apple", strategy="hybrid")

        assert results[0].relevance_score == pytest.approx(1.0)

    def test_query_embedding_failure_falls_back(self, store):
        def failing_embedder(text):
            raise RuntimeError("model unavailable")

        engine = RetrievalEngine(store, embedder=failing_embedder)
        _ingest(store, "apple.txt", "I like apple pie.")

        results = engine.search("apple", strategy="hybrid")

        assert results[0].relevance_score == pytest.approx(1.0)

    def test_cosine_similarity_edges(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0
        assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


class TestInvalidParameters:
    """Tests for configuration errors."""

    def test_non_positive_max_results(self, engine):
        with pytest.raises(ConfigurationError):
            engine.search("apple", max_results=0)

    def test_unknown_strategy(self, engine):
        with pytest.raises(ConfigurationError):
            engine.search("apple", strategy="fuzzy")

    def test_unknown_chunk_type(self, engine):
        with pytest.raises(ConfigurationError):
            engine.search("apple", chunk_types=["diagram"])

    @pytest.mark.parametrize("keyword_weight,semantic_weight", [(-1, 1), (0, 0)])
    def test_invalid_weights(self, store, keyword_weight, semantic_weight):
        with pytest.raises(ConfigurationError):
            RetrievalEngine(store, keyword_weight=keyword_weight, semantic_weight=semantic_weight)
