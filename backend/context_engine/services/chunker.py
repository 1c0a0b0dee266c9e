"""Boundary-aware text chunking with overlap."""
from typing import List

from context_engine.exceptions import ConfigurationError
from context_engine.models.document import ChunkSpan


# How far past the naive window end to look for a sentence or line break
BOUNDARY_LOOKAHEAD = 200

BOUNDARY_CHARS = (".", "\n")


def validate_chunk_config(target_size: int, overlap: int) -> None:
    """
    Check chunking parameters.

    Raises:
        ConfigurationError: If target_size is not positive or overlap is
            not strictly between 0 and target_size
    """
    if target_size <= 0:
        raise ConfigurationError(f"Chunk size must be positive, got {target_size}")
    if overlap <= 0 or overlap >= target_size:
        raise ConfigurationError(
            f"Chunk overlap must satisfy 0 < overlap < chunk size, "
            f"got overlap={overlap}, chunk size={target_size}"
        )


def find_boundary(text: str, naive_end: int, lookahead: int = BOUNDARY_LOOKAHEAD) -> int:
    """
    Snap a window end to the next sentence terminator, else the next newline.

    A period within the lookahead wins even when a newline comes first.

    Args:
        text: Source text
        naive_end: Window end before snapping (interior to text)
        lookahead: Maximum number of characters to search past naive_end

    Returns:
        Index just past the boundary character, or naive_end if neither a
        period nor a newline is found within the lookahead
    """
    limit = min(len(text), naive_end + lookahead)
    for boundary in BOUNDARY_CHARS:
        index = text.find(boundary, naive_end, limit)
        if index != -1:
            return index + 1
    return naive_end


def chunk_text(text: str, target_size: int, overlap: int) -> List[ChunkSpan]:
    """
    Split text into overlapping, boundary-snapped chunks.

    Each window starts ``overlap`` characters before the previous window's
    end, so the source slices ``text[start_index:end_index]`` overlap by
    exactly ``overlap`` characters. Chunk content is the trimmed slice;
    windows that trim to nothing are skipped.

    Args:
        text: Text to chunk
        target_size: Target window size in characters
        overlap: Characters shared between consecutive windows

    Returns:
        Ordered list of ChunkSpan objects

    Raises:
        ConfigurationError: If the chunking parameters are invalid
    """
    validate_chunk_config(target_size, overlap)

    spans: List[ChunkSpan] = []
    text_length = len(text)
    start = 0

    while start < text_length:
        end = start + target_size
        if end < text_length:
            end = find_boundary(text, end)
        else:
            end = text_length

        content = text[start:end].strip()
        if content:
            spans.append(ChunkSpan(start_index=start, end_index=end, content=content))

        if end >= text_length:
            break

        next_start = end - overlap
        if next_start <= start:
            raise ConfigurationError(
                f"Chunking made no progress at offset {start} "
                f"(chunk size={target_size}, overlap={overlap})"
            )
        start = next_start

    return spans
