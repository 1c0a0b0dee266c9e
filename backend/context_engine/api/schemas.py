"""Pydantic schemas for API requests and responses."""
import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from context_engine.models.document import Chunk, Document
from context_engine.models.retrieval import ContextPayload, RankingStrategy, SearchResult
from context_engine.services.chunk_store import ChunkStore


def _strip_control_characters(value: str) -> str:
    # Keep \n, \t and \r; drop the other C0 control characters and DEL
    return re.sub(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]", "", value).strip()


class ChunkSchema(BaseModel):
    """A stored chunk with its metadata and links."""

    id: str
    document_id: str
    index: int
    content: str
    type: str
    start_index: int
    end_index: int
    page_number: Optional[int] = None
    hierarchy: Optional[int] = None
    confidence: float = 1.0
    keywords: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    contextually_related: List[str] = Field(default_factory=list)

    @classmethod
    def from_chunk(cls, chunk: Chunk, store: ChunkStore) -> "ChunkSchema":
        """Build from a stored chunk; related links to removed documents are dropped."""
        return cls(
            id=chunk.id,
            document_id=chunk.document_id,
            index=chunk.index,
            content=chunk.content,
            type=chunk.type.value,
            start_index=chunk.start_index,
            end_index=chunk.end_index,
            page_number=chunk.metadata.page_number,
            hierarchy=chunk.metadata.hierarchy,
            confidence=chunk.metadata.confidence,
            keywords=list(chunk.metadata.keywords),
            summary=chunk.metadata.summary,
            before=chunk.relationships.before,
            after=chunk.relationships.after,
            contextually_related=[related.id for related in store.related_chunks(chunk.id)],
        )


class DocumentSummary(BaseModel):
    """Document listing entry without chunk bodies."""

    document_id: str = Field(..., description="Unique identifier for the document")
    filename: str = Field(..., description="Original filename")
    file_type: str
    size_bytes: int
    uploaded_at: datetime
    total_chunks: int = Field(..., description="Number of text chunks created")
    summary: Optional[str] = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummary":
        return cls(
            document_id=document.id,
            filename=document.filename,
            file_type=document.file_type,
            size_bytes=document.size_bytes,
            uploaded_at=document.uploaded_at,
            total_chunks=len(document.chunks),
            summary=document.summary,
        )


class DocumentDetail(DocumentSummary):
    """Full document with its chunks."""

    chunks: List[ChunkSchema]

    @classmethod
    def from_document(cls, document: Document, store: ChunkStore) -> "DocumentDetail":
        summary = DocumentSummary.from_document(document)
        return cls(
            **summary.model_dump(),
            chunks=[ChunkSchema.from_chunk(chunk, store) for chunk in document.chunks],
        )


class UploadResponse(DocumentSummary):
    """Response schema for document upload."""

    message: str = Field(default="Document uploaded and processed successfully")


class TextDocumentRequest(BaseModel):
    """Request schema for ingesting already-extracted text."""

    filename: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    file_type: str = "text/plain"


class DocumentListResponse(BaseModel):
    documents: List[DocumentSummary]


class DeleteResponse(BaseModel):
    deleted: bool
    document_id: Optional[str] = None


class SearchRequest(BaseModel):
    """Request schema for chunk search."""

    query: str = Field(..., description="Search query")
    max_results: Optional[int] = Field(None, description="Maximum number of results")
    min_relevance: Optional[float] = Field(None, ge=0.0, description="Minimum relevance score")
    strategy: Optional[RankingStrategy] = Field(None, description="keyword, semantic or hybrid")
    document_ids: Optional[List[str]] = None
    chunk_types: Optional[List[str]] = None

    @field_validator("query")
    @classmethod
    def clean_query(cls, v: str) -> str:
        return _strip_control_characters(v)


class SearchResultSchema(BaseModel):
    """A ranked chunk and the document it belongs to."""

    document_id: str
    filename: str
    relevance_score: float
    matched_terms: List[str] = Field(default_factory=list)
    chunk: ChunkSchema

    @classmethod
    def from_result(cls, result: SearchResult, store: ChunkStore) -> "SearchResultSchema":
        return cls(
            document_id=result.document.id,
            filename=result.document.filename,
            relevance_score=result.relevance_score,
            matched_terms=list(result.matched_terms),
            chunk=ChunkSchema.from_chunk(result.chunk, store),
        )


class SearchResponse(BaseModel):
    results: List[SearchResultSchema]


class ContextRequest(SearchRequest):
    """Search parameters plus the token budget for assembly."""

    token_budget: int = Field(..., description="Maximum estimated tokens of chunk content")


class ContextResponse(BaseModel):
    """Assembled context block."""

    text: str
    included_chunk_ids: List[str]
    estimated_tokens: int

    @classmethod
    def from_payload(cls, payload: ContextPayload) -> "ContextResponse":
        return cls(
            text=payload.text,
            included_chunk_ids=list(payload.included_chunk_ids),
            estimated_tokens=payload.estimated_tokens,
        )


class AskRequest(BaseModel):
    """Request schema for asking questions."""

    question: str = Field(..., min_length=1, description="User's question")
    model: Optional[str] = Field(None, description="Model override")
    token_budget: Optional[int] = Field(None, description="Context token budget")
    strategy: Optional[RankingStrategy] = None
    document_ids: Optional[List[str]] = None

    @field_validator("question")
    @classmethod
    def clean_question(cls, v: str) -> str:
        """
        Clean question by removing invalid control characters.

        Args:
            v: Raw question string

        Returns:
            Cleaned question string
        """
        cleaned = _strip_control_characters(v)
        if not cleaned:
            raise ValueError("Question cannot be empty after cleaning")
        return cleaned


class AskResponse(BaseModel):
    """Response schema for question answering."""

    answer: str = Field(..., description="Generated answer")
    sources: List[SearchResultSchema] = Field(..., description="Chunks included in the context")
    cached: bool = Field(False, description="Whether the answer came from the response cache")
    estimated_tokens: int = 0
    token_usage: Optional[dict] = Field(None, description="Token usage statistics")
    response_time_ms: Optional[float] = Field(None, description="Response time in milliseconds")


class CacheSetRequest(BaseModel):
    """Request schema for storing a response in the cache."""

    query: str
    model: str
    provider: str
    payload: str


class CacheSetResponse(BaseModel):
    stored: bool


class CacheGetResponse(BaseModel):
    hit: bool
    payload: Optional[str] = None


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl: float


class StoreStatsResponse(BaseModel):
    document_count: int
    total_chunks: int
    total_size: int
    avg_chunks_per_doc: int


class StatsResponse(BaseModel):
    """Combined store and cache statistics."""

    store: StoreStatsResponse
    cache: CacheStatsResponse
