"""Tests for the in-memory chunk store."""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from context_engine.exceptions import ConfigurationError, DocumentEmptyError
from context_engine.models.document import LayoutSegment
from context_engine.services.chunk_store import ChunkStore


class TestIngest:
    """Tests for document ingestion."""

    def test_chunks_form_a_single_chain(self, small_store, long_text):
        """Each chunk links to its neighbours; the ends link to nothing."""
        document = small_store.ingest("long.txt", long_text, "text/plain", len(long_text))
        chunks = document.chunks

        assert len(chunks) > 2
        assert chunks[0].relationships.before is None
        assert chunks[-1].relationships.after is None
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.relationships.after == current.id
            assert current.relationships.before == previous.id

    def test_chunk_ids_and_indexes(self, small_store, long_text):
        document = small_store.ingest("long.txt", long_text, "text/plain", len(long_text))

        for index, chunk in enumerate(document.chunks):
            assert chunk.index == index
            assert chunk.id == f"{document.id}:{index}"
            assert chunk.document_id == document.id
            assert small_store.get_chunk(chunk.id) is chunk

    def test_document_fields(self, store):
        text = "The quarterly report covers revenue and costs for the year."
        document = store.ingest("report.txt", text, "text/plain", 123)

        assert store.get(document.id) is document
        assert document.filename == "report.txt"
        assert document.content == text
        assert document.size_bytes == 123
        assert document.summary.startswith("Document: report.txt")
        assert document.chunks[0].metadata.keywords

    def test_empty_text_rejected(self, store):
        with pytest.raises(DocumentEmptyError):
            store.ingest("empty.txt", "  \n ", "text/plain", 4)
        assert len(store) == 0

    def test_invalid_chunk_config(self):
        with pytest.raises(ConfigurationError):
            ChunkStore(chunk_size=100, chunk_overlap=100)

    def test_page_marker_sets_page_number(self, store):
        document = store.ingest("paged.pdf", "[Page 3]\nContent on the third page.", "application/pdf", 10)
        assert document.chunks[0].metadata.page_number == 3

    def test_layout_segment_metadata(self, store):
        text = "Content from a laid out page."
        segment = LayoutSegment(start_index=0, end_index=len(text), page_number=7, font_size=12.0)

        document = store.ingest("layout.pdf", text, "application/pdf", 10, segments=[segment])

        metadata = document.chunks[0].metadata
        assert metadata.page_number == 7
        assert metadata.font_size == 12.0

    def test_embeddings_attached(self):
        store = ChunkStore(embedder=lambda text: [1.0, 2.0])
        document = store.ingest("a.txt", "Some embedded text.", "text/plain", 19)
        assert document.chunks[0].metadata.embedding == (1.0, 2.0)

    def test_embedding_failure_keeps_document(self):
        """A failing embedder leaves the document stored without embeddings."""

        def failing_embedder(text):
            raise RuntimeError("model unavailable")

        store = ChunkStore(embedder=failing_embedder)
        document = store.ingest("a.txt", "Some embedded text.", "text/plain", 19)

        assert store.get(document.id) is document
        assert document.chunks[0].metadata.embedding is None


class TestRelatedChunks:
    """Tests for keyword-based chunk relationships."""

    def test_shared_keywords_link_chunks(self, store):
        first = store.ingest(
            "a.txt",
            "Neural networks learn representations. Gradient descent optimizes networks.",
            "text/plain",
            10,
        )
        second = store.ingest(
            "b.txt", "Gradient descent trains neural networks quickly.", "text/plain", 10
        )

        first_chunk = first.chunks[0]
        second_chunk = second.chunks[0]
        assert first_chunk.id in second_chunk.relationships.contextually_related
        assert store.related_chunks(second_chunk.id) == [first_chunk]

    def test_removed_documents_are_skipped(self, store):
        first = store.ingest("a.txt", "Gradient descent trains neural networks.", "text/plain", 10)
        second = store.ingest("b.txt", "Neural networks use gradient descent.", "text/plain", 10)

        store.remove(first.id)

        assert store.related_chunks(second.chunks[0].id) == []

    def test_unknown_chunk(self, store):
        assert store.related_chunks("missing:0") == []


class TestStoreOperations:
    """Tests for lookup, removal and statistics."""

    def test_remove(self, store):
        document = store.ingest("a.txt", "Some text worth keeping.", "text/plain", 24)
        chunk_id = document.chunks[0].id

        assert store.remove(document.id) is True
        assert store.get(document.id) is None
        assert store.get_chunk(chunk_id) is None
        assert store.remove(document.id) is False

    def test_clear(self, store):
        store.ingest("a.txt", "First document text.", "text/plain", 20)
        store.ingest("b.txt", "Second document text.", "text/plain", 21)

        store.clear()

        assert len(store) == 0
        assert list(store.list_documents()) == []

    def test_list_in_insertion_order(self, store):
        names = ["c.txt", "a.txt", "b.txt"]
        for name in names:
            store.ingest(name, f"Contents of {name} here.", "text/plain", 10)

        assert [document.filename for document in store.list_documents()] == names
        assert [document.filename for document in store] == names

    def test_annotate_summary(self, store):
        document = store.ingest("a.txt", "Some text worth keeping.", "text/plain", 24)

        assert store.annotate_summary(document.id, "Short summary") is True
        assert store.get(document.id).summary == "Short summary"
        assert store.annotate_summary("missing", "x") is False

    def test_stats(self, small_store, long_text):
        small_store.ingest("long.txt", long_text, "text/plain", 540)
        small_store.ingest("short.txt", "One short chunk.", "text/plain", 16)

        stats = small_store.stats()

        assert stats["document_count"] == 2
        assert stats["total_chunks"] == sum(len(doc.chunks) for doc in small_store)
        assert stats["total_size"] == 556
        assert stats["avg_chunks_per_doc"] == round(stats["total_chunks"] / 2)

    def test_empty_stats(self, store):
        assert store.stats() == {
            "document_count": 0,
            "total_chunks": 0,
            "total_size": 0,
            "avg_chunks_per_doc": 0,
        }


class TestConcurrentIngest:
    """Tests for ingestion from several threads at once."""

    def test_parallel_ingest_keeps_index_consistent(self, small_store, long_text):
        """Every document lands with an intact chain and resolvable chunk ids."""
        count = 16
        barrier = threading.Barrier(count)

        def ingest(number):
            barrier.wait()
            return small_store.ingest(f"{number}.txt", long_text, "text/plain", len(long_text))

        with ThreadPoolExecutor(max_workers=count) as executor:
            documents = list(executor.map(ingest, range(count)))

        assert len(small_store) == count
        assert len({document.id for document in documents}) == count
        for document in documents:
            assert small_store.get(document.id) is document
            chunks = document.chunks
            assert len(chunks) > 2
            assert chunks[0].relationships.before is None
            assert chunks[-1].relationships.after is None
            for previous, current in zip(chunks, chunks[1:]):
                assert previous.relationships.after == current.id
                assert current.relationships.before == previous.id
            for chunk in chunks:
                assert small_store.get_chunk(chunk.id) is chunk
        assert small_store.stats()["total_chunks"] == sum(len(doc.chunks) for doc in documents)
