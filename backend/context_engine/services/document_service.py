"""Document ingestion service: validation, extraction with fallback, storage."""
import time
from typing import Optional

from context_engine.exceptions import DocumentEmptyError, ExtractionError
from context_engine.models.document import Document
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.extraction_service import (
    ExtractedText,
    ExtractionService,
    decode_plain_text,
    resolve_file_type,
)
from context_engine.utils.logger import logger
from context_engine.utils.metrics import EXTRACTION_FALLBACKS
from context_engine.utils.text_analysis import clean_text
from context_engine.validators import validate_upload


class DocumentService:
    """Turns uploaded files into stored documents."""

    def __init__(
        self,
        store: ChunkStore,
        extraction_service: Optional[ExtractionService] = None,
        max_file_size_mb: float = 50,
    ):
        """
        Initialize document service.

        Args:
            store: Chunk store receiving the documents
            extraction_service: Format-specific text extraction
            max_file_size_mb: Maximum accepted upload size
        """
        self.store = store
        self.extraction_service = extraction_service or ExtractionService()
        self.max_file_size_mb = max_file_size_mb

    def ingest_upload(
        self,
        file_content: bytes,
        filename: str,
        declared_type: Optional[str] = None,
    ) -> Document:
        """
        Validate, extract and store an uploaded file.

        Extraction failures fall back to decoding the raw bytes as text.

        Args:
            file_content: Raw file bytes
            filename: Original filename
            declared_type: Content type sent by the client

        Returns:
            The stored Document

        Raises:
            ValidationError: If the upload is rejected
            DocumentEmptyError: If no text remains after extraction and fallback
        """
        start_time = time.time()
        filename = validate_upload(filename, file_content, self.max_file_size_mb)
        file_type = resolve_file_type(filename, declared_type)

        extracted = self._extract(file_content, file_type, filename)
        if not extracted.text.strip():
            raise DocumentEmptyError(f"No content could be extracted from {filename}")

        document = self.store.ingest(
            filename=filename,
            text=extracted.text,
            file_type=file_type,
            size_bytes=len(file_content),
            segments=extracted.segments,
        )

        logger.info(
            f"Document uploaded successfully: {filename} in {time.time() - start_time:.2f}s",
            extra={"document_id": document.id, "chunk_count": len(document.chunks)},
        )
        return document

    def ingest_text(self, filename: str, text: str, file_type: str = "text/plain") -> Document:
        """Store already-extracted text."""
        if not text.strip():
            raise DocumentEmptyError(f"No content provided for {filename}")
        return self.store.ingest(
            filename=filename,
            text=text,
            file_type=file_type,
            size_bytes=len(text.encode("utf-8")),
        )

    def _extract(self, file_content: bytes, file_type: str, filename: str) -> ExtractedText:
        try:
            return self.extraction_service.extract(file_content, file_type, filename)
        except ExtractionError as e:
            EXTRACTION_FALLBACKS.inc()
            logger.warning(f"Extraction failed for {filename}, using plain-text fallback: {str(e)}")
            return ExtractedText(text=clean_text(decode_plain_text(file_content)))
