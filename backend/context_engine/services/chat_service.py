"""Question answering over stored documents: cache, search, assemble, generate."""
import time
from typing import Any, Dict, Iterable, Optional, Union

from context_engine.models.retrieval import RankingStrategy
from context_engine.services.context_assembler import ContextAssembler
from context_engine.services.llm_service import LLMService
from context_engine.services.response_cache import ResponseCache
from context_engine.services.retrieval_engine import RetrievalEngine
from context_engine.utils.logger import logger


class ChatService:
    """Runs the full context-augmented answer pipeline."""

    def __init__(
        self,
        engine: RetrievalEngine,
        assembler: ContextAssembler,
        cache: ResponseCache,
        llm_service: LLMService,
        max_results: int = 5,
        min_relevance: Optional[float] = 0.3,
        default_token_budget: int = 4000,
    ):
        """
        Initialize chat service.

        Args:
            engine: Retrieval engine used to rank chunks
            assembler: Context assembler applying the token budget
            cache: Response cache keyed by question, model and provider
            llm_service: Generation collaborator
            max_results: Number of chunks to retrieve
            min_relevance: Relevance floor passed to search
            default_token_budget: Budget used when the caller passes none
        """
        self.engine = engine
        self.assembler = assembler
        self.cache = cache
        self.llm_service = llm_service
        self.max_results = max_results
        self.min_relevance = min_relevance
        self.default_token_budget = default_token_budget

    async def ask(
        self,
        question: str,
        model: Optional[str] = None,
        token_budget: Optional[int] = None,
        strategy: Union[str, RankingStrategy] = RankingStrategy.HYBRID,
        document_ids: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """
        Answer a question using stored documents as context.

        Args:
            question: User's question
            model: Model override for the generation provider
            token_budget: Context token budget
            strategy: Ranking strategy for retrieval
            document_ids: Restrict retrieval to these documents

        Returns:
            Dictionary with answer, sources, cached flag, context statistics,
            token_usage and response_time_ms

        Raises:
            ConfigurationError: If search or assembly parameters are invalid
            GenerationError: If the provider call fails
        """
        start_time = time.time()
        model = model or self.llm_service.model
        provider = self.llm_service.provider

        cached_answer = self.cache.get(question, model, provider)
        if cached_answer is not None:
            return {
                "answer": cached_answer,
                "sources": [],
                "cached": True,
                "included_chunk_ids": [],
                "estimated_tokens": 0,
                "token_usage": None,
                "response_time_ms": (time.time() - start_time) * 1000,
            }

        results = self.engine.search(
            question,
            max_results=self.max_results,
            min_relevance=self.min_relevance,
            strategy=strategy,
            document_ids=document_ids,
        )
        payload = self.assembler.assemble(results, token_budget or self.default_token_budget)
        if payload.is_empty:
            logger.info("No document context fits the budget, asking without context")

        generation = await self.llm_service.generate(question, payload.text, model=model)
        self.cache.set(question, model, provider, generation["answer"])

        included = set(payload.included_chunk_ids)
        sources = [result for result in results if result.chunk.id in included]

        return {
            "answer": generation["answer"],
            "sources": sources,
            "cached": False,
            "included_chunk_ids": payload.included_chunk_ids,
            "estimated_tokens": payload.estimated_tokens,
            "token_usage": generation.get("token_usage"),
            "response_time_ms": (time.time() - start_time) * 1000,
        }
