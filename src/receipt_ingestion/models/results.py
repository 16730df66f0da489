# ============================================================================
# src/receipt_ingestion/models/results.py
# ============================================================================
"""
Pipeline output: the canonical receipt plus the diagnostics describing how
it was produced.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import ConfidenceLevel
from .receipt import ExtractedReceipt


@dataclass(frozen=True)
class PipelineDiagnostics:
    provider: str                       # "tesseract" or "tesseract+openai"
    processing_time_ms: float
    estimated_cost: float = 0.0         # USD; OCR is free
    primary_confidence: float = 0.0
    escalated: bool = False
    ai_error: Optional[str] = None
    stages: List[str] = field(default_factory=list)
    cached: bool = False
    needs_review: bool = False
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "processingTime": round(self.processing_time_ms, 1),
            "estimatedCost": round(self.estimated_cost, 6),
            "primaryConfidence": round(self.primary_confidence, 2),
            "escalated": self.escalated,
            "aiError": self.ai_error,
            "stages": list(self.stages),
            "cached": self.cached,
            "needsReview": self.needs_review,
            "confidenceLevel": self.confidence_level.value,
        }


@dataclass(frozen=True)
class PipelineResult:
    receipt: ExtractedReceipt
    diagnostics: PipelineDiagnostics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "receipt": self.receipt.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
        }
