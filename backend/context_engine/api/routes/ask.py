"""Ask endpoint for context-augmented question answering."""
from fastapi import APIRouter, Depends, HTTPException

from context_engine.api.dependencies import (
    get_app_settings,
    get_chat_service,
    get_chunk_store,
    to_http_exception,
)
from context_engine.api.schemas import AskRequest, AskResponse, SearchResultSchema
from context_engine.exceptions import DocumentProcessingError
from context_engine.services.chat_service import ChatService
from context_engine.services.chunk_store import ChunkStore
from context_engine.utils.logger import logger


router = APIRouter()


@router.post("/ask", response_model=AskResponse)
async def ask_question(
    request: AskRequest,
    chat_service: ChatService = Depends(get_chat_service),
    store: ChunkStore = Depends(get_chunk_store),
    settings=Depends(get_app_settings),
):
    """
    Answer a question using stored documents as context.

    Cached answers are returned without searching or calling the provider.

    Args:
        request: AskRequest with question and optional overrides
        chat_service: Chat service instance
        store: Chunk store used to resolve related chunk links

    Returns:
        AskResponse with answer, included sources and metadata
    """
    try:
        result = await chat_service.ask(
            question=request.question,
            model=request.model,
            token_budget=request.token_budget,
            strategy=request.strategy or settings.ranking_strategy,
            document_ids=request.document_ids,
        )

        return AskResponse(
            answer=result["answer"],
            sources=[SearchResultSchema.from_result(source, store) for source in result["sources"]],
            cached=result["cached"],
            estimated_tokens=result["estimated_tokens"],
            token_usage=result.get("token_usage"),
            response_time_ms=result.get("response_time_ms"),
        )

    except DocumentProcessingError as e:
        logger.error(f"Error answering question: {str(e)}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error answering question: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate answer")
