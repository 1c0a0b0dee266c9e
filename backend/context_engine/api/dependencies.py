"""Service accessors and error mapping shared by the route modules."""
from fastapi import HTTPException

from context_engine.exceptions import (
    ConfigurationError,
    DocumentProcessingError,
    GenerationError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from context_engine.services.chat_service import ChatService
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.context_assembler import ContextAssembler
from context_engine.services.document_service import DocumentService
from context_engine.services.response_cache import ResponseCache
from context_engine.services.retrieval_engine import RetrievalEngine


def get_chunk_store() -> ChunkStore:
    """Get chunk store from main app."""
    from context_engine.main import chunk_store
    if chunk_store is None:
        raise HTTPException(status_code=503, detail="Chunk store not initialized")
    return chunk_store


def get_document_service() -> DocumentService:
    """Get document service from main app."""
    from context_engine.main import document_service
    if document_service is None:
        raise HTTPException(status_code=503, detail="Document service not initialized")
    return document_service


def get_retrieval_engine() -> RetrievalEngine:
    """Get retrieval engine from main app."""
    from context_engine.main import retrieval_engine
    if retrieval_engine is None:
        raise HTTPException(status_code=503, detail="Retrieval engine not initialized")
    return retrieval_engine


def get_context_assembler() -> ContextAssembler:
    """Get context assembler from main app."""
    from context_engine.main import context_assembler
    if context_assembler is None:
        raise HTTPException(status_code=503, detail="Context assembler not initialized")
    return context_assembler


def get_response_cache() -> ResponseCache:
    """Get response cache from main app."""
    from context_engine.main import response_cache
    if response_cache is None:
        raise HTTPException(status_code=503, detail="Response cache not initialized")
    return response_cache


def get_chat_service() -> ChatService:
    """Get chat service; unavailable when no generation provider is configured."""
    from context_engine.main import chat_service
    if chat_service is None:
        raise HTTPException(status_code=503, detail="Generation provider not configured")
    return chat_service


def get_app_settings():
    """Get application settings from main app."""
    from context_engine.main import settings
    if settings is None:
        raise HTTPException(status_code=503, detail="Settings not initialized")
    return settings


def to_http_exception(error: DocumentProcessingError) -> HTTPException:
    """Convert a domain error to the matching HTTP response."""
    if isinstance(error, (ValidationError, ConfigurationError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, GenerationError):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, ServiceUnavailableError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=f"Request failed: {str(error)}")
