"""Document ingestion and management endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from context_engine.api.dependencies import (
    get_chunk_store,
    get_document_service,
    to_http_exception,
)
from context_engine.api.schemas import (
    DeleteResponse,
    DocumentDetail,
    DocumentListResponse,
    DocumentSummary,
    TextDocumentRequest,
    UploadResponse,
)
from context_engine.exceptions import DocumentProcessingError, NotFoundError
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.document_service import DocumentService
from context_engine.utils.logger import logger


router = APIRouter()


@router.post("/documents", response_model=UploadResponse)
async def upload_document(
    file: Annotated[UploadFile, File(...)],
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Upload and ingest a document (PDF, DOCX or text).

    Args:
        file: Document file to upload
        document_service: Document ingestion service

    Returns:
        UploadResponse with document ID and chunk statistics
    """
    try:
        file_content = await file.read()
        document = document_service.ingest_upload(file_content, file.filename, file.content_type)
        return UploadResponse(**DocumentSummary.from_document(document).model_dump())

    except DocumentProcessingError as e:
        raise to_http_exception(e)

    except Exception as e:
        logger.error(f"Unexpected error uploading document: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to process document: {str(e)}")


@router.post("/documents/text", response_model=UploadResponse)
async def ingest_text(
    request: TextDocumentRequest,
    document_service: DocumentService = Depends(get_document_service),
):
    """Ingest already-extracted text as a document."""
    try:
        document = document_service.ingest_text(request.filename, request.text, request.file_type)
        return UploadResponse(**DocumentSummary.from_document(document).model_dump())
    except DocumentProcessingError as e:
        raise to_http_exception(e)


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(store: ChunkStore = Depends(get_chunk_store)):
    """List stored documents in ingestion order."""
    return DocumentListResponse(
        documents=[DocumentSummary.from_document(document) for document in store.list_documents()]
    )


@router.get("/documents/{document_id}", response_model=DocumentDetail)
async def get_document(document_id: str, store: ChunkStore = Depends(get_chunk_store)):
    """Get a document with all of its chunks."""
    document = store.get(document_id)
    if document is None:
        raise to_http_exception(NotFoundError(f"Document not found: {document_id}"))
    return DocumentDetail.from_document(document, store)


@router.delete("/documents/{document_id}", response_model=DeleteResponse)
async def delete_document(document_id: str, store: ChunkStore = Depends(get_chunk_store)):
    """Remove a document and its chunks."""
    if not store.remove(document_id):
        raise to_http_exception(NotFoundError(f"Document not found: {document_id}"))
    return DeleteResponse(deleted=True, document_id=document_id)


@router.delete("/documents", response_model=DeleteResponse)
async def clear_documents(store: ChunkStore = Depends(get_chunk_store)):
    """Remove every stored document."""
    store.clear()
    return DeleteResponse(deleted=True)
