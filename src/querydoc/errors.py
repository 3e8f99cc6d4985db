"""Exception types raised by the document question-answering core."""
from __future__ import annotations


class QueryDocError(RuntimeError):
    """Base class for all service errors."""


class ExtractionError(QueryDocError):
    """Raised when no usable text could be extracted from an upload."""


class ScannedDocumentError(ExtractionError):
    """Raised when a document looks scanned and OCR has not been requested."""

    def __init__(self, file_name: str, pages: int) -> None:
        super().__init__(
            f"{file_name} appears to be a scanned document; run OCR to extract its text."
        )
        self.file_name = file_name
        self.pages = pages


class OCRUnavailableError(ExtractionError):
    """Raised when the external OCR tool is missing or fails."""


class DocumentNotFoundError(QueryDocError):
    """Raised when a document id is not part of the collection."""


class NoRelevantContentError(QueryDocError):
    """Raised when the ranker returns nothing for a question."""

    def __init__(self) -> None:
        super().__init__("No relevant content found in the loaded documents.")


class QuotaExceededError(QueryDocError):
    """Raised when the cloud usage counter reached its limit."""

    def __init__(self, used: int, limit: int) -> None:
        super().__init__(
            f"Cloud quota exhausted ({used}/{limit} requests used). "
            "Start the local model server or select a local model to keep asking questions."
        )
        self.used = used
        self.limit = limit


__all__ = [
    "DocumentNotFoundError",
    "ExtractionError",
    "NoRelevantContentError",
    "OCRUnavailableError",
    "QueryDocError",
    "QuotaExceededError",
    "ScannedDocumentError",
]
