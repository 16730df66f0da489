# ============================================================================
# src/receipt_ingestion/core/confidence.py
# ============================================================================
"""
Confidence Scoring and Escalation Policy

Provides utilities for:
- Deciding when to escalate from OCR to AI extraction
- Scoring data completeness of an extraction
- Combining OCR confidence and completeness into a final score
- Determining confidence levels and review flags

All scores are on a 0-100 scale.
"""

from dataclasses import dataclass
from typing import Sized

from ..models.enums import ConfidenceLevel
from ..models.receipt import UNKNOWN_VENDOR
from ..utils.parsing import clamp_confidence

DEFAULT_ACCURACY_THRESHOLD = 80.0
DEFAULT_REVIEW_THRESHOLD = 70.0

# Completeness penalties
UNKNOWN_VENDOR_PENALTY = 20.0
ZERO_TOTAL_PENALTY = 30.0
NO_ITEMS_PENALTY = 25.0
MIN_COMPLETENESS = 30.0

OCR_WEIGHT = 0.5
COMPLETENESS_WEIGHT = 0.5
AI_BOOST = 1.2
AI_CONFIDENCE_CAP = 95.0


@dataclass
class ConfidenceThresholds:
    """Confidence level thresholds"""
    high: float = 85.0
    medium: float = 70.0

    def get_level(self, score: float) -> ConfidenceLevel:
        if score >= self.high:
            return ConfidenceLevel.HIGH
        elif score >= self.medium:
            return ConfidenceLevel.MEDIUM
        else:
            return ConfidenceLevel.LOW


def should_escalate(primary_confidence: float, threshold: float = DEFAULT_ACCURACY_THRESHOLD) -> bool:
    """Escalate to AI extraction iff primary confidence is strictly below threshold."""
    return primary_confidence < threshold


def needs_review(confidence: float, review_threshold: float = DEFAULT_REVIEW_THRESHOLD) -> bool:
    return confidence < review_threshold


def data_completeness(vendor: str, total: float, items: Sized) -> float:
    """
    How much of the receipt was actually extracted.

    Starts at 100 and loses points for an unknown vendor, a zero total and
    an empty item list; never drops below 30.
    """
    score = 100.0
    if not vendor or vendor == UNKNOWN_VENDOR:
        score -= UNKNOWN_VENDOR_PENALTY
    if not total:
        score -= ZERO_TOTAL_PENALTY
    if len(items) == 0:
        score -= NO_ITEMS_PENALTY
    return max(MIN_COMPLETENESS, score)


def combine_confidence(ocr_confidence: float, completeness: float, ai_enhanced: bool) -> float:
    """
    Weighted average of OCR confidence and completeness.

    A successful AI extraction boosts the result by 20%, capped at 95.
    """
    combined = ocr_confidence * OCR_WEIGHT + completeness * COMPLETENESS_WEIGHT
    if ai_enhanced:
        combined = min(combined * AI_BOOST, AI_CONFIDENCE_CAP)
    return clamp_confidence(combined)
