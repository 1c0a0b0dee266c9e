"""Document and chunk data models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class ChunkType(str, Enum):
    """Structural type of a chunk."""

    TEXT = "text"
    HEADING = "heading"
    LIST = "list"
    CODE = "code"
    TABLE = "table"
    IMAGE = "image"


@dataclass(frozen=True)
class LayoutRect:
    """Bounding box of a chunk on its page."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ChunkSpan:
    """A window of source text produced by the chunker."""

    start_index: int
    end_index: int
    content: str


@dataclass(frozen=True)
class LayoutSegment:
    """Layout hint for a span of extracted text."""

    start_index: int
    end_index: int
    page_number: Optional[int] = None
    position: Optional[LayoutRect] = None
    font_size: Optional[float] = None
    hierarchy: Optional[int] = None


@dataclass
class ChunkMetadata:
    """Optional structural and retrieval metadata for a chunk."""

    confidence: float = 1.0
    keywords: Tuple[str, ...] = ()
    page_number: Optional[int] = None
    position: Optional[LayoutRect] = None
    font_size: Optional[float] = None
    hierarchy: Optional[int] = None
    summary: Optional[str] = None
    embedding: Optional[Tuple[float, ...]] = None


@dataclass
class ChunkRelationships:
    """Links between a chunk and its neighbours in the index."""

    before: Optional[str] = None
    after: Optional[str] = None
    contextually_related: List[str] = field(default_factory=list)


@dataclass
class Chunk:
    """Represents a text chunk with metadata."""

    id: str
    document_id: str
    index: int
    content: str
    type: ChunkType
    start_index: int
    end_index: int
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)
    relationships: ChunkRelationships = field(default_factory=ChunkRelationships)


@dataclass
class Document:
    """Represents an ingested document."""

    id: str
    filename: str
    content: str
    chunks: List[Chunk]
    uploaded_at: datetime
    size_bytes: int
    file_type: str
    summary: Optional[str] = None

    @property
    def chunk_ids(self) -> List[str]:
        return [chunk.id for chunk in self.chunks]
