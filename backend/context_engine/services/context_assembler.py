"""Token-budgeted assembly of retrieved chunks into a prompt context block."""
import math
from typing import Callable, Dict, List, Sequence

from context_engine.exceptions import ConfigurationError
from context_engine.models.document import Chunk, Document
from context_engine.models.retrieval import ContextPayload, SearchResult
from context_engine.utils.logger import logger


TokenEstimator = Callable[[str], int]

CONTEXT_PREAMBLE = (
    "## Document Context\n\n"
    "The following information is provided as additional context for your response:\n\n"
)

CONTEXT_CLOSING = (
    "Please consider this context when responding, but focus primarily on the "
    "user's question. Reference the context when relevant."
)


def estimate_tokens(text: str) -> int:
    """Rough token count: about four characters per token, rounded up."""
    return math.ceil(len(text) / 4)


class ContextAssembler:
    """Selects ranked chunks under a token budget and renders them per document."""

    def __init__(self, token_estimator: TokenEstimator = estimate_tokens):
        self.token_estimator = token_estimator

    def select(self, ranked: Sequence[SearchResult], token_budget: int) -> List[SearchResult]:
        """
        Take results in rank order until the next one would exceed the budget.

        Selection stops at the first overflowing result; smaller results
        ranked below it are not considered.

        Raises:
            ConfigurationError: If token_budget is not positive
        """
        if token_budget <= 0:
            raise ConfigurationError(f"Token budget must be positive, got {token_budget}")

        selected = []
        total = 0
        for result in ranked:
            cost = self.token_estimator(result.chunk.content)
            if total + cost > token_budget:
                break
            selected.append(result)
            total += cost
        return selected

    def assemble(self, ranked: Sequence[SearchResult], token_budget: int) -> ContextPayload:
        """
        Build the context payload for a ranked result list.

        Args:
            ranked: Search results in rank order
            token_budget: Maximum estimated tokens of included chunk content

        Returns:
            ContextPayload; empty when not even the top result fits

        Raises:
            ConfigurationError: If token_budget is not positive
        """
        selected = self.select(ranked, token_budget)
        if not selected:
            return ContextPayload(text="", included_chunk_ids=[], estimated_tokens=0)

        documents: Dict[str, Document] = {}
        grouped: Dict[str, List[Chunk]] = {}
        for result in selected:
            documents.setdefault(result.document.id, result.document)
            grouped.setdefault(result.document.id, []).append(result.chunk)

        blocks = []
        for position, (document_id, chunks) in enumerate(grouped.items(), 1):
            ordered = sorted(chunks, key=lambda chunk: chunk.index)
            blocks.append(self._render_document(position, documents[document_id], ordered))

        estimated = sum(self.token_estimator(result.chunk.content) for result in selected)
        payload = ContextPayload(
            text=CONTEXT_PREAMBLE + "".join(blocks) + CONTEXT_CLOSING,
            included_chunk_ids=[result.chunk.id for result in selected],
            estimated_tokens=estimated,
        )

        logger.info(
            f"Assembled context from {len(selected)} of {len(ranked)} chunks",
            extra={"estimated_tokens": estimated, "included_chunks": len(selected)},
        )
        return payload

    def _render_document(self, position: int, document: Document, chunks: List[Chunk]) -> str:
        parts = [
            f"### Context {position}: {document.filename}\n",
            f"Added: {document.uploaded_at.isoformat()}\n",
        ]
        if document.summary:
            parts.append(f"Summary: {document.summary}\n")
        parts.append("\n")

        for chunk in chunks:
            parts.append(f"#### Chunk {chunk.index + 1} ({chunk.type.value})\n")
            if chunk.metadata.page_number is not None:
                parts.append(f"*Page {chunk.metadata.page_number}*\n")
            parts.append(f"{chunk.content}\n\n")

        parts.append("---\n\n")
        return "".join(parts)
