"""In-memory repository of documents and their chunks."""
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from context_engine.exceptions import DocumentEmptyError
from context_engine.models.document import (
    Chunk,
    ChunkMetadata,
    ChunkRelationships,
    ChunkSpan,
    Document,
    LayoutSegment,
)
from context_engine.services.chunker import chunk_text, validate_chunk_config
from context_engine.utils.logger import logger
from context_engine.utils.metrics import CHUNKS_CREATED, DOCUMENTS_INGESTED
from context_engine.utils.text_analysis import (
    detect_chunk_type,
    extract_keywords,
    find_page_markers,
    page_for_offset,
    summarize_chunk,
    summarize_document,
)


Embedder = Callable[[str], Sequence[float]]

# Chunks sharing at least this many keywords are linked as related
MIN_SHARED_KEYWORDS = 2
MAX_RELATED_CHUNKS = 5


class ChunkStore:
    """Stores documents keyed by generated id, with single-writer semantics."""

    def __init__(
        self,
        chunk_size: int = 2000,
        chunk_overlap: int = 200,
        embedder: Optional[Embedder] = None,
    ):
        """
        Initialize the store.

        Args:
            chunk_size: Target chunk size in characters
            chunk_overlap: Overlap between consecutive chunks in characters
            embedder: Optional callable mapping text to an embedding vector

        Raises:
            ConfigurationError: If the chunking parameters are invalid
        """
        validate_chunk_config(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.embedder = embedder

        self._lock = threading.Lock()
        self._documents: Dict[str, Document] = {}
        self._chunks: Dict[str, Chunk] = {}

    def ingest(
        self,
        filename: str,
        text: str,
        file_type: str,
        size_bytes: int,
        segments: Optional[List[LayoutSegment]] = None,
    ) -> Document:
        """
        Chunk a document's text and store it.

        The document is built completely before it is inserted, so readers
        never observe a partially constructed document.

        Args:
            filename: Original filename
            text: Extracted document text
            file_type: Declared content type
            size_bytes: Size of the original file
            segments: Optional layout hints from extraction

        Returns:
            The stored Document

        Raises:
            DocumentEmptyError: If the text yields no chunks
        """
        document_id = uuid.uuid4().hex
        spans = chunk_text(text, self.chunk_size, self.chunk_overlap)
        if not spans:
            raise DocumentEmptyError(f"No content could be extracted from {filename}")

        chunks = self._build_chunks(document_id, text, spans, segments or [])
        self._embed_chunks(document_id, chunks)
        self._link_chunks(chunks)

        document = Document(
            id=document_id,
            filename=filename,
            content=text,
            chunks=chunks,
            uploaded_at=datetime.now(timezone.utc),
            size_bytes=size_bytes,
            file_type=file_type,
            summary=summarize_document(text, filename),
        )

        with self._lock:
            self._documents[document_id] = document
            for chunk in chunks:
                self._chunks[chunk.id] = chunk

        DOCUMENTS_INGESTED.inc()
        CHUNKS_CREATED.inc(len(chunks))
        logger.info(
            f"Ingested {filename}: {len(chunks)} chunks, {len(text):,} characters",
            extra={"document_id": document_id, "chunk_count": len(chunks)},
        )
        return document

    def _build_chunks(
        self,
        document_id: str,
        text: str,
        spans: List[ChunkSpan],
        segments: List[LayoutSegment],
    ) -> List[Chunk]:
        markers = find_page_markers(text)
        chunks = []

        for index, span in enumerate(spans):
            raw = text[span.start_index:span.end_index]
            content_start = span.start_index + len(raw) - len(raw.lstrip())
            chunk_type, hierarchy, confidence = detect_chunk_type(span.content)
            segment = _segment_at(segments, content_start)

            metadata = ChunkMetadata(
                confidence=confidence,
                keywords=extract_keywords(span.content),
                page_number=page_for_offset(markers, content_start),
                hierarchy=hierarchy,
                summary=summarize_chunk(span.content),
            )
            if segment is not None:
                if segment.page_number is not None:
                    metadata.page_number = segment.page_number
                metadata.position = segment.position
                metadata.font_size = segment.font_size
                if segment.hierarchy is not None:
                    metadata.hierarchy = segment.hierarchy

            chunks.append(
                Chunk(
                    id=f"{document_id}:{index}",
                    document_id=document_id,
                    index=index,
                    content=span.content,
                    type=chunk_type,
                    start_index=span.start_index,
                    end_index=span.end_index,
                    metadata=metadata,
                )
            )

        return chunks

    def _embed_chunks(self, document_id: str, chunks: List[Chunk]) -> None:
        if self.embedder is None:
            return
        try:
            for chunk in chunks:
                chunk.metadata.embedding = tuple(float(x) for x in self.embedder(chunk.content))
        except Exception as e:
            # Semantic ranking degrades to keyword-only for this document
            logger.warning(
                f"Embedding failed, storing document without embeddings: {str(e)}",
                extra={"document_id": document_id},
            )
            for chunk in chunks:
                chunk.metadata.embedding = None

    def _link_chunks(self, chunks: List[Chunk]) -> None:
        for position, chunk in enumerate(chunks):
            chunk.relationships = ChunkRelationships(
                before=chunks[position - 1].id if position > 0 else None,
                after=chunks[position + 1].id if position < len(chunks) - 1 else None,
            )

        with self._lock:
            candidates = list(self._chunks.values())
        candidates.extend(chunks)

        keyword_sets = {candidate.id: set(candidate.metadata.keywords) for candidate in candidates}
        for chunk in chunks:
            own = keyword_sets[chunk.id]
            related = []
            for candidate in candidates:
                if candidate.id == chunk.id:
                    continue
                if len(own & keyword_sets[candidate.id]) >= MIN_SHARED_KEYWORDS:
                    related.append(candidate.id)
                    if len(related) == MAX_RELATED_CHUNKS:
                        break
            chunk.relationships.contextually_related = related

    def get(self, document_id: str) -> Optional[Document]:
        with self._lock:
            return self._documents.get(document_id)

    def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        with self._lock:
            return self._chunks.get(chunk_id)

    def related_chunks(self, chunk_id: str) -> List[Chunk]:
        """Live chunks linked to chunk_id; links to removed documents are skipped."""
        with self._lock:
            chunk = self._chunks.get(chunk_id)
            if chunk is None:
                return []
            return [
                self._chunks[related_id]
                for related_id in chunk.relationships.contextually_related
                if related_id in self._chunks
            ]

    def remove(self, document_id: str) -> bool:
        with self._lock:
            document = self._documents.pop(document_id, None)
            if document is None:
                return False
            for chunk in document.chunks:
                self._chunks.pop(chunk.id, None)

        logger.info(f"Removed document {document.filename}", extra={"document_id": document_id})
        return True

    def clear(self) -> None:
        with self._lock:
            count = len(self._documents)
            self._documents.clear()
            self._chunks.clear()
        logger.info(f"Cleared {count} documents from store")

    def annotate_summary(self, document_id: str, summary: str) -> bool:
        """Replace a document's summary. Returns False if the document is unknown."""
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                return False
            document.summary = summary
            return True

    def list_documents(self) -> Iterator[Document]:
        """Iterate over a snapshot of stored documents in insertion order."""
        with self._lock:
            snapshot = list(self._documents.values())
        return iter(snapshot)

    def __iter__(self) -> Iterator[Document]:
        return self.list_documents()

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            documents = list(self._documents.values())
        total_chunks = sum(len(doc.chunks) for doc in documents)
        return {
            "document_count": len(documents),
            "total_chunks": total_chunks,
            "total_size": sum(doc.size_bytes for doc in documents),
            "avg_chunks_per_doc": round(total_chunks / len(documents)) if documents else 0,
        }


def _segment_at(segments: List[LayoutSegment], offset: int) -> Optional[LayoutSegment]:
    for segment in segments:
        if segment.start_index <= offset < segment.end_index:
            return segment
    return None
