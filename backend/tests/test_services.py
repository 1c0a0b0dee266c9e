"""Tests for service modules."""
import io
from types import SimpleNamespace

import pytest
from unittest.mock import Mock, patch, AsyncMock

from context_engine.exceptions import (
    DocumentEmptyError,
    EmbeddingError,
    ExtractionError,
    FileSizeExceededError,
    FileTypeNotSupportedError,
    GenerationError,
    ServiceUnavailableError,
)
from context_engine.services.chat_service import ChatService
from context_engine.services.context_assembler import ContextAssembler
from context_engine.services.document_service import DocumentService
from context_engine.services.embedding_service import EmbeddingService
from context_engine.services.extraction_service import (
    DOCX_TYPE,
    PDF_TYPE,
    ExtractionService,
    resolve_file_type,
)
from context_engine.services.llm_service import LLMService
from context_engine.services.prompts import AnswerPrompt
from context_engine.services.response_cache import ResponseCache


class TestDocumentService:
    """Tests for DocumentService."""

    def test_ingest_text_upload(self, store):
        """Test plain-text upload."""
        service = DocumentService(store)

        document = service.ingest_upload(b"Plain text content for the document.", "notes.txt", "text/plain")

        assert store.get(document.id) is document
        assert document.file_type == "text/plain"
        assert document.chunks[0].content == "Plain text content for the document."

    def test_extraction_failure_falls_back_to_plain_text(self, store):
        """Extraction errors fall back to decoding the raw bytes."""
        extraction_service = Mock(spec=ExtractionService)
        extraction_service.extract = Mock(side_effect=ExtractionError("corrupt file"))
        service = DocumentService(store, extraction_service=extraction_service)

        document = service.ingest_upload(b"Readable text inside a broken file.", "broken.pdf", PDF_TYPE)

        assert document.chunks[0].content == "Readable text inside a broken file."
        assert document.file_type == PDF_TYPE

    def test_unextractable_content(self, store):
        extraction_service = Mock(spec=ExtractionService)
        extraction_service.extract = Mock(side_effect=ExtractionError("corrupt file"))
        service = DocumentService(store, extraction_service=extraction_service)

        with pytest.raises(DocumentEmptyError):
            service.ingest_upload(b"   \n  ", "blank.pdf", PDF_TYPE)
        assert len(store) == 0

    def test_empty_file(self, store):
        with pytest.raises(DocumentEmptyError):
            DocumentService(store).ingest_upload(b"", "empty.txt")

    def test_blocked_extension(self, store):
        with pytest.raises(FileTypeNotSupportedError):
            DocumentService(store).ingest_upload(b"MZ binary", "setup.exe")

    def test_file_too_large(self, store):
        service = DocumentService(store, max_file_size_mb=0.00001)
        with pytest.raises(FileSizeExceededError):
            service.ingest_upload(b"x" * 100, "big.txt")

    def test_ingest_text(self, store):
        document = DocumentService(store).ingest_text("pasted.md", "# Notes\nSome pasted text.", "text/markdown")
        assert document.file_type == "text/markdown"
        with pytest.raises(DocumentEmptyError):
            DocumentService(store).ingest_text("blank.txt", "  ")

    def test_resolve_file_type(self):
        assert resolve_file_type("report.pdf", None) == PDF_TYPE
        assert resolve_file_type("report.docx", "application/octet-stream") == DOCX_TYPE
        assert resolve_file_type("notes.md", None) == "text/markdown"
        assert resolve_file_type("data.bin", "text/csv") == "text/csv"

    def test_docx_headings_and_tables(self):
        """DOCX headings become markdown headings and tables become pipe rows."""
        docx = pytest.importorskip("docx")

        doc = docx.Document()
        doc.add_heading("Overview", level=2)
        doc.add_paragraph("Body paragraph.")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "name"
        table.rows[0].cells[1].text = "value"
        buffer = io.BytesIO()
        doc.save(buffer)

        extracted = ExtractionService().extract(buffer.getvalue(), DOCX_TYPE, "report.docx")

        assert extracted.text == "## Overview\n\nBody paragraph.\n\n| name | value |"

    def test_unsupported_type_raises_extraction_error(self):
        with pytest.raises(ExtractionError):
            ExtractionService().extract(b"\x00\x01", "image/png", "photo.png")


class TestChatService:
    """Tests for ChatService."""

    @pytest.fixture
    def cache(self, clock):
        return ResponseCache(clock=clock)

    @pytest.fixture
    def chat_service(self, engine, cache, mock_llm_service):
        return ChatService(engine, ContextAssembler(), cache, mock_llm_service, min_relevance=0.3)

    @pytest.mark.asyncio
    async def test_answer_with_context(self, store, chat_service, mock_llm_service):
        """Test pipeline: search, assemble, generate, cache."""
        document = store.ingest("fruit.txt", "An apple a day keeps the doctor away.", "text/plain", 37)

        result = await chat_service.ask("apple")

        assert result["cached"] is False
        assert result["answer"] == mock_llm_service.generate.return_value["answer"]
        assert result["included_chunk_ids"] == [document.chunks[0].id]
        assert [source.chunk.id for source in result["sources"]] == [document.chunks[0].id]

        question, context = mock_llm_service.generate.call_args.args
        assert question == "apple"
        assert "An apple a day keeps the doctor away." in context
        assert mock_llm_service.generate.call_args.kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_second_ask_is_cached(self, store, chat_service, mock_llm_service):
        store.ingest("fruit.txt", "An apple a day keeps the doctor away.", "text/plain", 37)

        await chat_service.ask("apple")
        result = await chat_service.ask("  Apple ")

        assert result["cached"] is True
        assert result["answer"] == mock_llm_service.generate.return_value["answer"]
        assert mock_llm_service.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_no_documents_asks_without_context(self, chat_service, mock_llm_service):
        result = await chat_service.ask("apple")

        assert result["sources"] == []
        assert mock_llm_service.generate.call_args.args[1] == ""

    @pytest.mark.asyncio
    async def test_generation_error_is_not_cached(self, chat_service, cache, mock_llm_service):
        mock_llm_service.generate.side_effect = GenerationError("provider down")

        with pytest.raises(GenerationError):
            await chat_service.ask("apple")
        assert len(cache) == 0


class TestLLMService:
    """Tests for LLMService."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        with pytest.raises(ServiceUnavailableError):
            LLMService(api_key=None)

    @pytest.mark.asyncio
    async def test_generate(self):
        """Test answer generation with a mocked provider response."""
        service = LLMService(api_key="test-key")
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Generated answer."))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

        with patch.object(service.client.chat.completions, "create", AsyncMock(return_value=response)) as create:
            result = await service.generate("What is RAG?", "## Document Context")

        assert result["answer"] == "Generated answer."
        assert result["token_usage"] == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        assert result["response_time_ms"] >= 0
        messages = create.call_args.kwargs["messages"]
        assert messages[0]["content"] == AnswerPrompt.SYSTEM_MESSAGE
        assert messages[1]["content"].startswith("## Document Context")
        await service.close()

    @pytest.mark.asyncio
    async def test_provider_failure(self):
        service = LLMService(api_key="test-key")

        with patch.object(
            service.client.chat.completions, "create", AsyncMock(side_effect=RuntimeError("timeout"))
        ):
            with pytest.raises(GenerationError):
                await service.generate("What is RAG?", "")
        await service.close()

    def test_prompt_without_context(self):
        assert AnswerPrompt.build("Just the question?", "") == "Just the question?"
        assert AnswerPrompt.build("Q?", "Context").endswith("QUESTION: Q?")


class TestEmbeddingService:
    """Tests for EmbeddingService."""

    def test_unavailable_without_library(self):
        with patch("context_engine.services.embedding_service.SENTENCE_TRANSFORMERS_AVAILABLE", False):
            with pytest.raises(ServiceUnavailableError):
                EmbeddingService()

    def test_embed_loads_model_lazily(self):
        model = Mock()
        model.encode = Mock(return_value=Mock(tolist=Mock(return_value=[[0.1, 0.2]])))

        with patch("context_engine.services.embedding_service.SENTENCE_TRANSFORMERS_AVAILABLE", True), \
             patch("context_engine.services.embedding_service.SentenceTransformer", create=True) as loader:
            loader.return_value = model
            service = EmbeddingService()
            assert loader.call_count == 0

            assert service.embed("Test text") == [0.1, 0.2]
            service.embed("More text")

        assert loader.call_count == 1

    def test_encode_failure(self):
        model = Mock()
        model.encode = Mock(side_effect=RuntimeError("out of memory"))

        with patch("context_engine.services.embedding_service.SENTENCE_TRANSFORMERS_AVAILABLE", True), \
             patch("context_engine.services.embedding_service.SentenceTransformer", create=True) as loader:
            loader.return_value = model
            with pytest.raises(EmbeddingError):
                EmbeddingService().embed("Test text")
