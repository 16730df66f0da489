# ============================================================================
# src/receipt_ingestion/models/enums.py
# ============================================================================
"""
Processing Enums
- Processing method
- Pipeline stages
- Confidence levels
"""

from enum import Enum


class ProcessingMethod(str, Enum):
    OCR_ONLY = "ocr-only"
    AI_ENHANCED = "ai-enhanced"


class PipelineStage(str, Enum):
    START = "start"
    NORMALIZED = "normalized"
    PRIMARY_EXTRACTED = "primary_extracted"
    ESCALATED = "escalated"     # AI extractor invoked
    SKIPPED = "skipped"         # AI not needed or not available
    MERGED = "merged"
    DONE = "done"


class ConfidenceLevel(str, Enum):
    HIGH = "high"       # >= 85
    MEDIUM = "medium"   # 70 - 85
    LOW = "low"         # < 70
