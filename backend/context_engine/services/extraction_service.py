"""Text extraction for PDF, DOCX and plain-text uploads."""
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from context_engine.exceptions import ExtractionError, ServiceUnavailableError
from context_engine.models.document import LayoutRect, LayoutSegment
from context_engine.utils.logger import logger
from context_engine.utils.text_analysis import clean_text

try:
    import pdfplumber
    PDFPLUMBER_AVAILABLE = True
except ImportError:
    PDFPLUMBER_AVAILABLE = False
    logger.warning("pdfplumber is not available. PDF extraction will fall back to plain text.")

try:
    from docx import Document as DocxDocument
    DOCX_AVAILABLE = True
except ImportError:
    DOCX_AVAILABLE = False
    logger.warning("python-docx is not available. DOCX extraction will fall back to plain text.")


PDF_TYPE = "application/pdf"
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

TEXT_EXTENSIONS = {".txt", ".md", ".markdown", ".csv", ".json", ".html", ".htm"}


@dataclass
class ExtractedText:
    """Plain text and optional layout hints extracted from a file."""

    text: str
    segments: List[LayoutSegment] = field(default_factory=list)


def resolve_file_type(filename: str, declared_type: Optional[str]) -> str:
    """Content type from the declared type, falling back to the file extension."""
    if declared_type and declared_type != "application/octet-stream":
        return declared_type

    extension = Path(filename).suffix.lower()
    if extension == ".pdf":
        return PDF_TYPE
    elif extension == ".docx":
        return DOCX_TYPE
    elif extension == ".md":
        return "text/markdown"
    return "text/plain"


def extract_text_from_pdf(content: bytes) -> ExtractedText:
    """
    Extract text from a PDF, one segment per page.

    Each page's text is preceded by a ``[Page N]`` marker so chunks can be
    attributed to pages.

    Raises:
        ServiceUnavailableError: If pdfplumber is not available
        ExtractionError: If the PDF cannot be read or has no text
    """
    if not PDFPLUMBER_AVAILABLE:
        raise ServiceUnavailableError("pdfplumber is not available. Please install pdfplumber.")

    parts: List[str] = []
    segments: List[LayoutSegment] = []
    offset = 0

    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page_number, page in enumerate(pdf.pages, 1):
                page_text = clean_text(page.extract_text() or "")
                if not page_text:
                    continue

                separator = "\n\n" if parts else ""
                block = f"{separator}[Page {page_number}]\n{page_text}"
                sizes = [char.get("size") for char in page.chars if char.get("size")]
                segments.append(
                    LayoutSegment(
                        start_index=offset,
                        end_index=offset + len(block),
                        page_number=page_number,
                        position=LayoutRect(x=0.0, y=0.0, width=float(page.width), height=float(page.height)),
                        font_size=max(set(sizes), key=sizes.count) if sizes else None,
                    )
                )
                parts.append(block)
                offset += len(block)
    except Exception as e:
        logger.error(f"Error processing PDF: {str(e)}")
        raise ExtractionError(f"Failed to process PDF file: {str(e)}")

    if not parts:
        raise ExtractionError("No text content found in PDF")

    return ExtractedText(text="".join(parts), segments=segments)


def extract_text_from_docx(content: bytes) -> ExtractedText:
    """
    Extract paragraph and table text from a DOCX file.

    Raises:
        ServiceUnavailableError: If python-docx is not available
        ExtractionError: If DOCX processing fails
    """
    if not DOCX_AVAILABLE:
        raise ServiceUnavailableError("python-docx is not available. Please install python-docx.")

    try:
        doc = DocxDocument(io.BytesIO(content))
        full_text = []

        for paragraph in doc.paragraphs:
            if not paragraph.text.strip():
                continue
            style = paragraph.style.name if paragraph.style is not None else ""
            if style.startswith("Heading"):
                level = style.replace("Heading", "").strip()
                depth = int(level) if level.isdigit() else 1
                full_text.append(f"{'#' * depth} {paragraph.text}")
            else:
                full_text.append(paragraph.text)

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    full_text.append("| " + " | ".join(cells) + " |")

        return ExtractedText(text=clean_text("\n\n".join(full_text)))

    except Exception as e:
        logger.error(f"Error processing DOCX file: {str(e)}")
        raise ExtractionError(f"Failed to process DOCX file: {str(e)}")


def decode_plain_text(content: bytes) -> str:
    return content.decode("utf-8", errors="ignore")


class ExtractionService:
    """Dispatches extraction by content type."""

    def extract(self, content: bytes, file_type: str, filename: str) -> ExtractedText:
        """
        Extract plain text from a file.

        Args:
            content: Raw file bytes
            file_type: Declared content type
            filename: Original filename

        Returns:
            ExtractedText with optional layout segments

        Raises:
            ExtractionError: If the format handler fails or is unavailable
        """
        try:
            if file_type == PDF_TYPE:
                extracted = extract_text_from_pdf(content)
            elif file_type == DOCX_TYPE:
                extracted = extract_text_from_docx(content)
            elif file_type.startswith("text/") or Path(filename).suffix.lower() in TEXT_EXTENSIONS:
                extracted = ExtractedText(text=clean_text(decode_plain_text(content)))
            else:
                raise ExtractionError(f"Unsupported file type: {file_type}")
        except ServiceUnavailableError as e:
            raise ExtractionError(str(e))

        logger.info(
            f"Extracted text from {filename}: {len(extracted.segments)} layout segments, "
            f"{len(extracted.text):,} characters"
        )
        return extracted
