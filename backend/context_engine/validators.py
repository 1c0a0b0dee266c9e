"""Upload validation utilities."""
from context_engine.exceptions import (
    DocumentEmptyError,
    FileSizeExceededError,
    FileTypeNotSupportedError,
)


BLOCKED_EXTENSIONS = {".exe", ".dll", ".so", ".bin", ".zip", ".tar", ".gz"}


def validate_filename(filename: str) -> str:
    """Validate the filename and return it stripped."""
    if not filename or not filename.strip():
        raise FileTypeNotSupportedError("File name is required.")

    filename = filename.strip()
    extension = "." + filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    if extension in BLOCKED_EXTENSIONS:
        raise FileTypeNotSupportedError(f"Unsupported file type: {extension}")

    return filename


def validate_file_size(file_size_bytes: int, max_size_mb: float) -> None:
    """Validate file size."""
    if file_size_bytes == 0:
        raise DocumentEmptyError("Uploaded file is empty.")

    file_size_mb = file_size_bytes / (1024 * 1024)
    if file_size_mb > max_size_mb:
        raise FileSizeExceededError(
            f"File size ({file_size_mb:.2f} MB) exceeds maximum allowed size ({max_size_mb} MB)."
        )


def validate_upload(filename: str, content: bytes, max_size_mb: float) -> str:
    """
    Validate an uploaded file before extraction.

    Args:
        filename: Original filename
        content: Raw file bytes
        max_size_mb: Maximum allowed size in megabytes

    Returns:
        The cleaned filename

    Raises:
        FileTypeNotSupportedError: If the filename is missing or blocked
        FileSizeExceededError: If the file is too large
        DocumentEmptyError: If the file is empty
    """
    filename = validate_filename(filename)
    validate_file_size(len(content), max_size_mb)
    return filename
