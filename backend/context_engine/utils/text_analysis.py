"""Text cleaning, classification and keyword utilities."""
import re
from bisect import bisect_right
from collections import Counter
from typing import List, Optional, Tuple

from context_engine.models.document import ChunkType


PAGE_MARKER_RE = re.compile(r"\[Page (\d+)\]")
MARKDOWN_HEADING_RE = re.compile(r"^(#{1,6})\s")
LIST_ITEM_RE = re.compile(r"^([-*+]|\d+\.)\s")
IMAGE_RE = re.compile(r"^!\[[^\]]*\]\([^)]*\)")
CAPITALISED_LINE_RE = re.compile(r"^[A-Z][^.]*$")

STOP_WORDS = frozenset({
    "this", "that", "with", "have", "will", "from", "they", "been", "were",
    "these", "those", "there", "their", "what", "when", "which", "would",
    "could", "should", "about", "into", "than", "then", "them", "also",
})


def clean_text(text: str) -> str:
    """
    Clean and normalize extracted text while keeping line structure.

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text with normalized line breaks and spacing
    """
    # Normalize line breaks
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    # Remove control characters but keep newlines and tabs
    text = re.sub(r"[\x00-\x08\x0b-\x0c\x0e-\x1f]", "", text)

    # Collapse runs of spaces and tabs
    text = re.sub(r"[ \t]+", " ", text)

    # Remove excessive newlines (more than 2 consecutive)
    text = re.sub(r"\n{3,}", "\n\n", text)

    return text.strip()


def detect_chunk_type(content: str) -> Tuple[ChunkType, Optional[int], float]:
    """
    Classify a chunk by the structure of its leading lines.

    Args:
        content: Trimmed chunk content

    Returns:
        Tuple of (chunk type, heading depth or None, confidence)
    """
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    if not lines:
        return ChunkType.TEXT, None, 0.5

    first = lines[0]

    if first.startswith("```"):
        return ChunkType.CODE, None, 0.95

    heading = MARKDOWN_HEADING_RE.match(first)
    if heading:
        return ChunkType.HEADING, len(heading.group(1)), 0.95

    table_rows = sum(1 for line in lines if line.startswith("|"))
    if len(lines) >= 2 and table_rows * 2 > len(lines):
        return ChunkType.TABLE, None, 0.9

    if IMAGE_RE.match(first):
        return ChunkType.IMAGE, None, 0.9

    if LIST_ITEM_RE.match(first):
        return ChunkType.LIST, None, 0.9

    if "{" in first or "}" in first or first.startswith(("def ", "class ", "function ")):
        return ChunkType.CODE, None, 0.6

    if len(first) < 100 and CAPITALISED_LINE_RE.match(first) and len(lines) > 1:
        return ChunkType.HEADING, 1, 0.7

    return ChunkType.TEXT, None, 0.9


def extract_keywords(content: str, limit: int = 10) -> Tuple[str, ...]:
    """Return the most frequent non-trivial words of a text."""
    words = re.sub(r"[^\w\s]", " ", content.lower()).split()
    counts = Counter(
        word for word in words
        if len(word) > 3 and word not in STOP_WORDS
    )
    return tuple(word for word, _ in counts.most_common(limit))


def summarize_chunk(content: str) -> str:
    """First sentence of a chunk, or its first 100 characters."""
    first_sentence = re.split(r"[.!?]+", content, maxsplit=1)[0].strip()
    if len(first_sentence) > 10:
        return first_sentence + "."
    if len(content) > 100:
        return content[:100] + "..."
    return content


def summarize_document(content: str, filename: str, max_length: int = 300) -> str:
    """
    Build a short document summary from its leading sentences.

    Args:
        content: Full document text
        filename: Original filename
        max_length: Maximum summary body length in characters

    Returns:
        Summary string prefixed with the document name
    """
    sentences = [s.strip() for s in re.split(r"[.!?]+", content) if len(s.strip()) > 10]

    summary = ""
    for sentence in sentences[:10]:
        if len(summary) + len(sentence) > max_length:
            break
        summary += sentence + ". "

    if not summary:
        summary = content[:200] + ("..." if len(content) > 200 else "")

    return f"Document: {filename}\n\n{summary.strip()}"


def find_page_markers(text: str) -> List[Tuple[int, int]]:
    """Return (offset, page number) for every ``[Page N]`` marker in text."""
    return [(match.start(), int(match.group(1))) for match in PAGE_MARKER_RE.finditer(text)]


def page_for_offset(markers: List[Tuple[int, int]], offset: int) -> Optional[int]:
    """Page number of the last marker at or before offset."""
    if not markers:
        return None
    position = bisect_right([marker_offset for marker_offset, _ in markers], offset)
    if position == 0:
        return None
    return markers[position - 1][1]
