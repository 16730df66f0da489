# ============================================================================
# src/receipt_ingestion/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the receipt ingestion pipeline.

Only primary-extraction failures are fatal to a pipeline run. Everything
under AIExtractionError is recovered by the orchestrator.
"""

from typing import List, Optional


class ReceiptIngestionError(Exception):
    """Base exception for all receipt ingestion errors."""

    code = "PROCESSING_FAILED"

    def __init__(self, message: str, provider: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        if code:
            self.code = code

    def to_dict(self):
        return {
            "error": str(self),
            "code": self.code,
            "provider": self.provider,
        }


class ConfigurationError(ReceiptIngestionError):
    """Invalid configuration."""
    code = "CONFIGURATION_ERROR"


class DocumentFetchError(ReceiptIngestionError):
    """Could not download the document from its URL."""
    code = "FETCH_FAILED"


class PrimaryExtractionError(ReceiptIngestionError):
    """Primary OCR pass failed. Always fatal."""
    code = "PRIMARY_EXTRACTION_FAILED"


class UnsupportedMediaTypeError(PrimaryExtractionError):
    """Input is neither an image nor a PDF."""
    code = "UNSUPPORTED_MEDIA_TYPE"

    def __init__(self, mime_type: str, provider: Optional[str] = None):
        super().__init__(f"Unsupported file type: {mime_type}", provider=provider)
        self.mime_type = mime_type


class RasterizationError(PrimaryExtractionError):
    """PDF page could not be converted to an image."""
    code = "RASTERIZATION_FAILED"


class RecognitionError(PrimaryExtractionError):
    """OCR engine failed, crashed or timed out."""
    code = "RECOGNITION_FAILED"


class AIExtractionError(ReceiptIngestionError):
    """Structured AI extraction failed (network, timeout, bad response)."""
    code = "AI_EXTRACTION_FAILED"


class AITimeoutError(AIExtractionError):
    """Completion call exceeded its timeout."""
    code = "AI_TIMEOUT"


class SchemaValidationError(AIExtractionError):
    """AI response does not match the receipt schema."""
    code = "AI_SCHEMA_INVALID"

    def __init__(self, violations: List[str], provider: Optional[str] = None):
        super().__init__(
            "Invalid receipt data structure: " + "; ".join(violations),
            provider=provider,
        )
        self.violations = list(violations)
