# ============================================================================
# src/receipt_ingestion/models/__init__.py
# ============================================================================
"""
Receipt data model and pipeline results.
"""

from .enums import ProcessingMethod, PipelineStage, ConfidenceLevel
from .receipt import (
    UNKNOWN_VENDOR,
    DEFAULT_CURRENCY,
    DEFAULT_CATEGORY,
    AI_CONFIDENCE,
    LineItem,
    ExtractedReceipt,
    PrimaryResult,
    CompletionUsage,
    ParsedItem,
    ParsedReceipt,
    PrimaryOnly,
    AIEnhanced,
    MergeInput,
    AIExtractionOutcome,
)
from .results import PipelineDiagnostics, PipelineResult
