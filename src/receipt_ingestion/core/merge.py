# ============================================================================
# src/receipt_ingestion/core/merge.py
# ============================================================================
"""
Reconciliation / Merge Engine

Combines the primary OCR result and an optional AI result into one
ExtractedReceipt. Each field is decided independently so a partial failure
of either extractor does not discard what the other got right:

- vendor: AI's unless missing, "Unknown Vendor", or 2 characters or fewer
- date: AI's unless it equals today (treated as "AI defaulted")
- total / subtotal / tax: AI's value when > 0, each falling back separately
- currency: AI's when given
- line items: AI's whole list when non-empty (fresh ids), else primary's
- category: recomputed from the final vendor and items
"""

import logging
from datetime import date
from typing import Optional

from ..classifiers.expense_classifier import categorize_item, categorize_receipt
from ..models.enums import ProcessingMethod
from ..models.receipt import (
    UNKNOWN_VENDOR,
    AIEnhanced,
    ExtractedReceipt,
    LineItem,
    MergeInput,
    ParsedReceipt,
    PrimaryOnly,
    PrimaryResult,
)
from ..utils.parsing import today_iso
from .confidence import combine_confidence, data_completeness

logger = logging.getLogger(__name__)


def reconcile(sources: MergeInput, today: Optional[date] = None) -> ExtractedReceipt:
    """Merge a tagged input; the tag decides which rules apply."""
    if isinstance(sources, AIEnhanced):
        return _merge_ai(sources.primary, sources.ai, today)
    if isinstance(sources, PrimaryOnly):
        return _merge_primary(sources.primary, sources.ai_attempted)
    raise TypeError(f"Unsupported merge input: {type(sources).__name__}")


def merge(
    primary: PrimaryResult,
    ai: Optional[ParsedReceipt] = None,
    today: Optional[date] = None,
    ai_attempted: bool = False,
) -> ExtractedReceipt:
    """
    Merge a primary result with an optional AI result.

    Args:
        primary: Primary OCR result
        ai: Validated AI result, or None when skipped or failed
        today: Reference date for the date heuristic (default: today)
        ai_attempted: The AI stage ran but produced nothing usable
    """
    if ai is not None:
        return reconcile(AIEnhanced(primary, ai), today)
    return reconcile(PrimaryOnly(primary, ai_attempted=ai_attempted), today)


def _merge_primary(primary: PrimaryResult, ai_attempted: bool) -> ExtractedReceipt:
    if ai_attempted:
        completeness = data_completeness(primary.vendor, primary.total_amount, primary.line_items)
        confidence = combine_confidence(primary.confidence, completeness, ai_enhanced=False)
    else:
        confidence = primary.confidence

    line_items = tuple(primary.line_items)
    return ExtractedReceipt(
        vendor=primary.vendor,
        date=primary.date,
        total_amount=primary.total_amount,
        subtotal=primary.subtotal,
        tax=primary.tax,
        currency=primary.currency,
        line_items=line_items,
        category=categorize_receipt(primary.vendor, line_items),
        confidence=confidence,
        processing_method=ProcessingMethod.OCR_ONLY,
        raw_text=primary.raw_text,
    )


def _pick_vendor(primary: PrimaryResult, ai: ParsedReceipt) -> str:
    vendor = (ai.vendor or "").strip()
    if vendor and vendor != UNKNOWN_VENDOR and len(vendor) > 2:
        return vendor
    return primary.vendor


def _pick_date(primary: PrimaryResult, ai: ParsedReceipt, today: Optional[date]) -> str:
    # An AI date equal to today is indistinguishable from a defaulted one
    if ai.date and ai.date != today_iso(today):
        return ai.date
    return primary.date


def _pick_amount(ai_value: float, primary_value: float) -> float:
    return ai_value if ai_value and ai_value > 0 else primary_value


def _merge_ai(primary: PrimaryResult, ai: ParsedReceipt, today: Optional[date]) -> ExtractedReceipt:
    vendor = _pick_vendor(primary, ai)

    if ai.items:
        line_items = tuple(
            LineItem.create(
                description=item.desc,
                total_price=item.price,
                quantity=item.quantity,
                unit_price=item.unit_price,
                category=categorize_item(item.desc),
            )
            for item in ai.items
        )
    else:
        line_items = tuple(primary.line_items)

    total = _pick_amount(ai.total, primary.total_amount)
    completeness = data_completeness(vendor, total, line_items)
    confidence = combine_confidence(primary.confidence, completeness, ai_enhanced=True)

    logger.debug(
        f"Merged AI result: vendor_from_ai={vendor != primary.vendor}, "
        f"items_from_ai={bool(ai.items)}, completeness={completeness:.0f}"
    )

    return ExtractedReceipt(
        vendor=vendor,
        date=_pick_date(primary, ai, today),
        total_amount=total,
        subtotal=_pick_amount(ai.subtotal, primary.subtotal),
        tax=_pick_amount(ai.tax, primary.tax),
        currency=ai.currency or primary.currency,
        line_items=line_items,
        category=categorize_receipt(vendor, line_items),
        confidence=confidence,
        processing_method=ProcessingMethod.AI_ENHANCED,
        raw_text=primary.raw_text,
    )
