# ============================================================================
# src/receipt_ingestion/models/receipt.py
# ============================================================================
"""
Receipt data model
- Canonical ExtractedReceipt and its line items
- Primary OCR result and normalized AI result
- Tagged merge input
- Explicit AI extraction outcome

Records are immutable. Invariants (non-negative 2dp money, confidence in
[0, 100], non-empty vendor, ISO date) are enforced by coercion at
construction, never by rejection.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from ..utils.exceptions import AIExtractionError
from ..utils.parsing import (
    ISO_DATE_PATTERN,
    clamp_confidence,
    normalize_amount,
    normalize_date,
)
from .enums import ProcessingMethod

UNKNOWN_VENDOR = "Unknown Vendor"
DEFAULT_CURRENCY = "USD"
DEFAULT_CATEGORY = "Other"
AI_CONFIDENCE = 90.0


def _new_item_id() -> str:
    return uuid.uuid4().hex


def _clean_vendor(vendor: Any) -> str:
    if isinstance(vendor, str) and vendor.strip():
        return vendor.strip()
    return UNKNOWN_VENDOR


def _clean_date(value: Any) -> str:
    if isinstance(value, str) and ISO_DATE_PATTERN.match(value):
        return value
    return normalize_date(value)


def _clean_quantity(value: Any) -> float:
    quantity = normalize_amount(value)
    return quantity if quantity >= 1 else 1.0


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str
    quantity: float = 1.0
    unit_price: float = 0.0
    total_price: float = 0.0
    category: str = DEFAULT_CATEGORY

    def __post_init__(self):
        object.__setattr__(self, 'description', str(self.description or '').strip())
        object.__setattr__(self, 'quantity', _clean_quantity(self.quantity))
        object.__setattr__(self, 'unit_price', normalize_amount(self.unit_price))
        object.__setattr__(self, 'total_price', normalize_amount(self.total_price))
        object.__setattr__(self, 'category', self.category or DEFAULT_CATEGORY)

    @classmethod
    def create(
        cls,
        description: str,
        total_price: Any,
        quantity: Any = 1,
        unit_price: Any = None,
        category: str = DEFAULT_CATEGORY,
    ) -> 'LineItem':
        """Create an item with a fresh id; unit price defaults to total / quantity."""
        qty = _clean_quantity(quantity)
        total = normalize_amount(total_price)
        if unit_price is None:
            unit = round(total / qty, 2)
        else:
            unit = normalize_amount(unit_price)
        return cls(
            id=_new_item_id(),
            description=description,
            quantity=qty,
            unit_price=unit,
            total_price=total,
            category=category,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
            "category": self.category,
        }


@dataclass(frozen=True)
class ExtractedReceipt:
    """Canonical structured record of one receipt."""
    vendor: str
    date: str
    total_amount: float
    subtotal: float = 0.0
    tax: float = 0.0
    currency: str = DEFAULT_CURRENCY
    line_items: Tuple[LineItem, ...] = ()
    category: str = DEFAULT_CATEGORY
    confidence: float = 0.0
    processing_method: ProcessingMethod = ProcessingMethod.OCR_ONLY
    raw_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'vendor', _clean_vendor(self.vendor))
        object.__setattr__(self, 'date', _clean_date(self.date))
        object.__setattr__(self, 'total_amount', normalize_amount(self.total_amount))
        object.__setattr__(self, 'subtotal', normalize_amount(self.subtotal))
        object.__setattr__(self, 'tax', normalize_amount(self.tax))
        object.__setattr__(self, 'currency', (self.currency or DEFAULT_CURRENCY).strip().upper())
        object.__setattr__(self, 'line_items', tuple(self.line_items or ()))
        object.__setattr__(self, 'category', self.category or DEFAULT_CATEGORY)
        object.__setattr__(self, 'confidence', clamp_confidence(self.confidence))
        object.__setattr__(self, 'processing_method', ProcessingMethod(self.processing_method))
        object.__setattr__(self, 'raw_text', self.raw_text or "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendor": self.vendor,
            "date": self.date,
            "totalAmount": self.total_amount,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "currency": self.currency,
            "lineItems": [item.to_dict() for item in self.line_items],
            "category": self.category,
            "confidence": round(self.confidence, 2),
            "processingMethod": self.processing_method.value,
            "rawText": self.raw_text,
        }


@dataclass(frozen=True)
class PrimaryResult:
    """Output of the primary OCR extractor: raw text, legibility score, field guess."""
    raw_text: str
    confidence: float
    vendor: str = UNKNOWN_VENDOR
    date: str = ""
    total_amount: float = 0.0
    subtotal: float = 0.0
    tax: float = 0.0
    currency: str = DEFAULT_CURRENCY
    line_items: Tuple[LineItem, ...] = ()
    engine: str = "tesseract"

    def __post_init__(self):
        object.__setattr__(self, 'raw_text', self.raw_text or "")
        object.__setattr__(self, 'confidence', clamp_confidence(self.confidence))
        object.__setattr__(self, 'vendor', _clean_vendor(self.vendor))
        object.__setattr__(self, 'date', _clean_date(self.date))
        object.__setattr__(self, 'total_amount', normalize_amount(self.total_amount))
        object.__setattr__(self, 'subtotal', normalize_amount(self.subtotal))
        object.__setattr__(self, 'tax', normalize_amount(self.tax))
        object.__setattr__(self, 'line_items', tuple(self.line_items or ()))


@dataclass(frozen=True)
class CompletionUsage:
    """Token usage and estimated cost of one completion call."""
    provider: str = ""
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0


@dataclass(frozen=True)
class ParsedItem:
    desc: str
    price: float
    quantity: float = 1.0
    unit_price: float = 0.0


@dataclass(frozen=True)
class ParsedReceipt:
    """Schema-validated, normalized output of the structured AI extractor."""
    vendor: str
    date: str
    total: float
    subtotal: float = 0.0
    tax: float = 0.0
    currency: Optional[str] = None
    items: Tuple[ParsedItem, ...] = ()
    confidence: float = AI_CONFIDENCE
    usage: CompletionUsage = field(default_factory=CompletionUsage)


@dataclass(frozen=True)
class PrimaryOnly:
    """Merge input when the AI stage was skipped (ai_attempted=False) or failed."""
    primary: PrimaryResult
    ai_attempted: bool = False


@dataclass(frozen=True)
class AIEnhanced:
    """Merge input when the AI stage returned a validated result."""
    primary: PrimaryResult
    ai: ParsedReceipt


MergeInput = Union[PrimaryOnly, AIEnhanced]


@dataclass(frozen=True)
class AIExtractionOutcome:
    """Either a ParsedReceipt or the error that prevented one."""
    receipt: Optional[ParsedReceipt] = None
    error: Optional[AIExtractionError] = None

    @property
    def ok(self) -> bool:
        return self.receipt is not None

    @classmethod
    def success(cls, receipt: ParsedReceipt) -> 'AIExtractionOutcome':
        return cls(receipt=receipt)

    @classmethod
    def failure(cls, error: AIExtractionError) -> 'AIExtractionOutcome':
        return cls(error=error)
