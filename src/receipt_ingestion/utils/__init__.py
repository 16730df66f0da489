# ============================================================================
# src/receipt_ingestion/utils/__init__.py
# ============================================================================
"""
Shared utilities: exceptions, logging, text and image helpers.
"""

from .exceptions import (
    ReceiptIngestionError,
    ConfigurationError,
    DocumentFetchError,
    PrimaryExtractionError,
    UnsupportedMediaTypeError,
    RasterizationError,
    RecognitionError,
    AIExtractionError,
    AITimeoutError,
    SchemaValidationError,
)
from .text_normalizer import normalize, split_lines, MAX_NORMALIZED_LENGTH
from .parsing import normalize_amount, normalize_date, parse_amount
