"""Search and context assembly endpoints."""
from typing import List

from fastapi import APIRouter, Depends

from context_engine.api.dependencies import (
    get_app_settings,
    get_context_assembler,
    get_retrieval_engine,
    to_http_exception,
)
from context_engine.api.schemas import (
    ContextRequest,
    ContextResponse,
    SearchRequest,
    SearchResponse,
    SearchResultSchema,
)
from context_engine.exceptions import DocumentProcessingError
from context_engine.models.retrieval import SearchResult
from context_engine.services.context_assembler import ContextAssembler
from context_engine.services.retrieval_engine import RetrievalEngine


router = APIRouter()


def _run_search(request: SearchRequest, engine: RetrievalEngine, settings) -> List[SearchResult]:
    # Unset request fields take the configured defaults
    return engine.search(
        request.query,
        max_results=request.max_results if request.max_results is not None else settings.max_results,
        min_relevance=request.min_relevance if request.min_relevance is not None else settings.min_relevance,
        strategy=request.strategy or settings.ranking_strategy,
        document_ids=request.document_ids,
        chunk_types=request.chunk_types,
    )


@router.post("/search", response_model=SearchResponse)
async def search_documents(
    request: SearchRequest,
    engine: RetrievalEngine = Depends(get_retrieval_engine),
    settings=Depends(get_app_settings),
):
    """
    Rank stored chunks against a query.

    Args:
        request: SearchRequest with query and optional filters
        engine: Retrieval engine instance

    Returns:
        SearchResponse with results sorted by descending relevance
    """
    try:
        results = _run_search(request, engine, settings)
    except DocumentProcessingError as e:
        raise to_http_exception(e)
    return SearchResponse(results=[SearchResultSchema.from_result(result, engine.store) for result in results])


@router.post("/context", response_model=ContextResponse)
async def assemble_context(
    request: ContextRequest,
    engine: RetrievalEngine = Depends(get_retrieval_engine),
    assembler: ContextAssembler = Depends(get_context_assembler),
    settings=Depends(get_app_settings),
):
    """Search, then assemble the ranked chunks into a budgeted context block."""
    try:
        results = _run_search(request, engine, settings)
        payload = assembler.assemble(results, request.token_budget)
    except DocumentProcessingError as e:
        raise to_http_exception(e)
    return ContextResponse.from_payload(payload)
