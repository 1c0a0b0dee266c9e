"""Custom exception classes for document ingestion and retrieval."""


class DocumentProcessingError(Exception):
    """Base exception for document context engine errors."""
    pass


class ConfigurationError(DocumentProcessingError):
    """Raised when chunking, search or assembly parameters are invalid."""
    pass


class ValidationError(DocumentProcessingError):
    """Raised when document validation fails."""
    pass


class FileTypeNotSupportedError(ValidationError):
    """Raised when an unsupported file type is encountered."""
    pass


class FileSizeExceededError(ValidationError):
    """Raised when file size exceeds the maximum allowed."""
    pass


class DocumentEmptyError(ValidationError):
    """Raised when a document has no extractable content."""
    pass


class NotFoundError(DocumentProcessingError):
    """Raised when a document or chunk id does not exist."""
    pass


class ExtractionError(DocumentProcessingError):
    """Raised when text extraction from a document fails."""
    pass


class EmbeddingError(DocumentProcessingError):
    """Raised when embedding generation fails."""
    pass


class GenerationError(DocumentProcessingError):
    """Raised when the text-generation provider call fails."""
    pass


class ServiceUnavailableError(DocumentProcessingError):
    """Raised when required services are not available."""
    pass
