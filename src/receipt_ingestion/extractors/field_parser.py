# ============================================================================
# src/receipt_ingestion/extractors/field_parser.py
# ============================================================================
"""
Field Parser

Best-effort structured guess from raw OCR text:
- Vendor (known chains, else first substantial header line)
- Transaction date (numeric and month-name formats -> ISO)
- Total / subtotal / tax (keyword-scored amount candidates + back-filling)
- Line items (ordered regex patterns with sanity checks and de-duplication)

Works on line-structured text. Never raises: missing fields fall back to
"Unknown Vendor", today's date, zero amounts and no items.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from difflib import SequenceMatcher
from typing import List, Optional, Tuple

from dateutil import parser as date_parser

from ..classifiers.expense_classifier import categorize_item
from ..models.receipt import UNKNOWN_VENDOR, LineItem
from ..utils.parsing import today_iso
from ..utils.text_normalizer import split_lines

logger = logging.getLogger(__name__)

MAX_AMOUNT = 99999.0
MAX_ITEM_PRICE = 10000.0
MAX_ITEM_QUANTITY = 100
ITEM_TOLERANCE = 0.05
DUPLICATE_SIMILARITY = 0.8


@dataclass
class FieldGuess:
    vendor: str = UNKNOWN_VENDOR
    date: str = ""
    total: float = 0.0
    subtotal: float = 0.0
    tax: float = 0.0
    line_items: List[LineItem] = field(default_factory=list)


def parse_receipt_text(raw_text: str, today: Optional[date] = None) -> FieldGuess:
    """Parse OCR text into a FieldGuess."""
    lines = split_lines(raw_text)
    total, subtotal, tax = extract_amounts(lines)
    guess = FieldGuess(
        vendor=extract_vendor(lines),
        date=extract_date(lines, today=today),
        total=total,
        subtotal=subtotal,
        tax=tax,
        line_items=extract_line_items(lines),
    )
    logger.debug(
        f"Parsed {len(lines)} lines: vendor={guess.vendor!r}, total={guess.total:.2f}, "
        f"items={len(guess.line_items)}"
    )
    return guess


# ----------------------------------------------------------------------------
# Vendor
# ----------------------------------------------------------------------------

KNOWN_VENDORS = (
    (("HOME DEPOT", "HOMEDEPOT"), "The Home Depot"),
    (("WALMART", "WAL-MART", "WAL MART"), "Walmart"),
    (("LOWE'S", "LOWES"), "Lowe's"),
    (("TARGET",), "Target"),
    (("COSTCO",), "Costco"),
)

_NUMERIC_ONLY = re.compile(r'^\d+$')
_DATE_LIKE = re.compile(r'^[\d/\-]+$')
_MONEY_ONLY = re.compile(r'^[\d$.,\s]+$')


def extract_vendor(lines: List[str]) -> str:
    """Vendor name from the first five lines."""
    for line in lines[:5]:
        if len(line) < 3 or _NUMERIC_ONLY.match(line) or _DATE_LIKE.match(line):
            continue

        upper = line.upper()
        for markers, name in KNOWN_VENDORS:
            if any(marker in upper for marker in markers):
                return name

        if len(line) > 3 and not _MONEY_ONLY.match(line):
            return line

    return UNKNOWN_VENDOR


# ----------------------------------------------------------------------------
# Date
# ----------------------------------------------------------------------------

_ISO_DATE = re.compile(r'(?<!\d)(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})(?!\d)')
_US_DATE = re.compile(r'(?<![\d/\-])(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})(?![\d/\-])')
_MONTH_NAME_DATE = re.compile(
    r'\b(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s*\d{1,2},?\s*\d{2,4}\b',
    re.IGNORECASE,
)


def _parse_date(text: str, **kwargs) -> Optional[str]:
    try:
        return date_parser.parse(text, **kwargs).date().isoformat()
    except (ValueError, OverflowError):
        return None


def extract_date(lines: List[str], today: Optional[date] = None) -> str:
    """First parseable date on the receipt; today's date when none is found."""
    for line in lines:
        match = _ISO_DATE.search(line)
        if match:
            parsed = _parse_date(match.group(0), yearfirst=True)
            if parsed:
                return parsed

        match = _US_DATE.search(line)
        if match:
            parsed = _parse_date(match.group(1), dayfirst=False)
            if parsed:
                return parsed

        match = _MONTH_NAME_DATE.search(line)
        if match:
            parsed = _parse_date(match.group(0))
            if parsed:
                return parsed

    return today_iso(today)


# ----------------------------------------------------------------------------
# Amounts
# ----------------------------------------------------------------------------

_DECIMAL_AMOUNT = re.compile(r'(?<![\d.,])\$?\s?(\d{1,3}(?:,\d{3})+|\d+)\.(\d{2})(?!\d)')
_DOLLAR_AMOUNT = re.compile(r'\$\s?(\d{1,3}(?:,\d{3})+|\d+)(?![\d.,])')

_SUBTOTAL_WORDS = re.compile(
    r'\b(subtotal|sub\s*total|sub-total|net\s*amount|before\s*tax|merchandise\s*total|'
    r'your\s*order|order\s*total|purchase\s*amount|item\s*total|product\s*total)\b'
)
_TOTAL_WORDS = re.compile(
    r'\b(total|amount\s*due|balance\s*due|grand\s*total|final\s*total|you\s*owe|pay\s*amount|'
    r'total\s*amount|amount\s*paid|total\s*sale|sale\s*total)\b'
)
_TAX_WORDS = re.compile(
    r'\b(tax|gst|hst|pst|vat|sales\s*tax|state\s*tax|city\s*tax|local\s*tax|fee|service\s*fee|'
    r'transaction\s*fee|processing\s*fee|convenience\s*fee|tx|levy)\b'
)
_CHANGE_WORDS = re.compile(r'\b(change|cash\s*back|refund|credit)\b')
_PAYMENT_WORDS = re.compile(r'\b(paid|payment|cash|card|visa|mastercard|amex|credit\s*card|debit)\b')

_EXACT_TOTAL = re.compile(r'^total\s*:?\s*\$?[\d.,]+$')
_EXACT_SUBTOTAL = re.compile(r'^subtotal\s*:?\s*\$?[\d.,]+$')
_EXACT_TAX = re.compile(r'^(sales\s*)?tax\s*:?\s*\$?[\d.,]+$')


@dataclass
class AmountCandidate:
    amount: float
    kind: str
    confidence: int
    line_index: int


def _find_amounts(line: str) -> List[float]:
    amounts = []
    for match in _DECIMAL_AMOUNT.finditer(line):
        amounts.append(float(f"{match.group(1).replace(',', '')}.{match.group(2)}"))
    for match in _DOLLAR_AMOUNT.finditer(line):
        amounts.append(float(match.group(1).replace(',', '')))
    return [a for a in amounts if 0 < a <= MAX_AMOUNT]


def _classify_amount(lower_line: str, index: int, line_count: int, amount: float) -> Tuple[str, int]:
    """Kind and confidence (0-100) for an amount found on a line."""
    # Subtotal is checked before total so that "sub total" is not read as a total
    if _SUBTOTAL_WORDS.search(lower_line):
        return 'subtotal', 95 if _EXACT_SUBTOTAL.match(lower_line) else 85

    if _TOTAL_WORDS.search(lower_line):
        if _EXACT_TOTAL.match(lower_line):
            return 'total', 100
        return 'total', 100 if index > line_count * 0.6 else 90

    if _TAX_WORDS.search(lower_line):
        return 'tax', 95 if _EXACT_TAX.match(lower_line) else 85

    if _CHANGE_WORDS.search(lower_line):
        return 'change', 95

    if _PAYMENT_WORDS.search(lower_line):
        return 'payment', 80

    if index > line_count * 0.7 and amount > 5:
        return 'likely_total', 60

    if amount < 20 and index > line_count * 0.5:
        return 'likely_tax', 40

    return 'unknown', 0


def _best(candidates: List[AmountCandidate], kinds: Tuple[str, ...]) -> float:
    matching = [c for c in candidates if c.kind in kinds]
    if not matching:
        return 0.0
    # max() keeps the first candidate on ties
    return max(matching, key=lambda c: c.confidence).amount


def extract_amounts(lines: List[str]) -> Tuple[float, float, float]:
    """
    (total, subtotal, tax) from keyword-scored candidates.

    Missing values are back-filled from the other two where the arithmetic
    allows; subtotal never exceeds a known total.
    """
    candidates: List[AmountCandidate] = []
    line_count = len(lines)

    for index, line in enumerate(lines):
        lower_line = re.sub(r'\s+', ' ', line.lower())
        for amount in _find_amounts(line):
            kind, confidence = _classify_amount(lower_line, index, line_count, amount)
            candidates.append(AmountCandidate(amount, kind, confidence, index))

    total = _best(candidates, ('total', 'likely_total'))
    subtotal = _best(candidates, ('subtotal',))
    tax = _best(candidates, ('tax', 'likely_tax'))

    if total == 0:
        reasonable = [
            c.amount for c in candidates
            if c.kind not in ('change', 'payment') and c.amount > 1
        ]
        if reasonable:
            total = max(reasonable)

    if total == 0 and subtotal > 0:
        total = subtotal + tax
    if subtotal == 0 and total > tax > 0:
        subtotal = total - tax
    if tax == 0 and total > subtotal > 0:
        tax = total - subtotal

    if total > 0 and subtotal > total:
        subtotal = total

    return round(total, 2), round(subtotal, 2), round(max(tax, 0.0), 2)


# ----------------------------------------------------------------------------
# Line items
# ----------------------------------------------------------------------------

# (name, pattern, layout); layout tells how groups map onto qty/unit/total
ITEM_PATTERNS = (
    ('qty_at_unit_total',
     re.compile(r'^(.+?)\s+(\d+(?:\.\d+)?)\s*[@x]\s*\$?(\d+\.\d{2})\s*\$?(\d+\.\d{2})$', re.IGNORECASE),
     'qty_unit_total'),
    ('qty_times_unit_equals_total',
     re.compile(r'^(.+?)\s+(\d+)\s*x\s*\$?(\d+\.\d{2})\s*=?\s*\$?(\d+\.\d{2})$', re.IGNORECASE),
     'qty_unit_total'),
    ('parenthetical_price',
     re.compile(r'^(.+?)\s*\(\$?(\d+\.\d{2})\)$'),
     'price'),
    ('trailing_price',
     re.compile(r'^(.+?)\s+\$?(\d+\.\d{2})\s*$'),
     'price'),
    ('qty_price',
     re.compile(r'^(.+?)\s+(\d+(?:\.\d+)?)\s*\$?(\d+\.?\d*)$'),
     'qty_total'),
    ('each_price',
     re.compile(r'^(.+?)\s+(\d+\.?\d*)\s*ea\s*\$?(\d+\.\d{2})$', re.IGNORECASE),
     'unit_total'),
)

_NON_ITEM_LINE = re.compile(
    r'\b(subtotal|tax|gst|hst|pst|vat|amount due|change|tender|cash|credit|debit|visa|mastercard|'
    r'receipt|thank|store|address|phone|www\.|cashier|refund auth|total|grand total|balance|'
    r'payment|your account)\b',
    re.IGNORECASE,
)
_DATE_TIME_LINE = re.compile(r'^\d+/\d+/\d+|^[\d\s\-/]+$|^\d+:\d+')
_SUMMARY_DESCRIPTION = re.compile(r'^(total|subtotal|tax|payment|balance|amount due|grand total)', re.IGNORECASE)


def clean_description(description: str) -> str:
    """Strip list numbering, bullets and product codes from an item description."""
    text = re.sub(r'^\d+\.\s*', '', description)
    text = re.sub(r'^[*\-•]\s*', '', text)
    text = re.sub(r'\b\d{10,}\b', '', text)
    text = re.sub(r'\b[A-Z]{2,3}-[A-Z0-9-]+\b', '', text)
    text = re.sub(r'\b\d{3}\s\d{3}\b', '', text)
    text = re.sub(r'^\w+-', '', text)
    return re.sub(r'\s+', ' ', text).strip()


def _item_values(match: re.Match, layout: str) -> Tuple[float, float, float]:
    """(quantity, unit_price, total_price) for a pattern match."""
    if layout == 'qty_unit_total':
        return float(match.group(2)), float(match.group(3)), float(match.group(4))
    if layout == 'unit_total':
        return 1.0, float(match.group(2)), float(match.group(3))
    if layout == 'qty_total':
        quantity = float(match.group(2))
        total = float(match.group(3))
        return quantity, (total / quantity if quantity else 0.0), total
    total = float(match.group(2))
    return 1.0, total, total


def _is_valid_item(description: str, quantity: float, unit_price: float, total_price: float) -> bool:
    return (
        len(description) > 2
        and not _SUMMARY_DESCRIPTION.match(description)
        and 0 < quantity <= MAX_ITEM_QUANTITY
        and 0 < unit_price <= MAX_ITEM_PRICE
        and 0 < total_price <= MAX_ITEM_PRICE
        and abs(quantity * unit_price - total_price) < ITEM_TOLERANCE
    )


def _parse_item_line(line: str) -> Optional[LineItem]:
    for name, pattern, layout in ITEM_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue

        description = clean_description(match.group(1))
        quantity, unit_price, total_price = _item_values(match, layout)

        if _is_valid_item(description, quantity, unit_price, total_price):
            logger.debug(f"Item line matched {name}: {description!r} {total_price:.2f}")
            return LineItem.create(
                description=description,
                quantity=quantity,
                unit_price=round(unit_price, 2),
                total_price=round(total_price, 2),
                category=categorize_item(description),
            )
    return None


def _similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def deduplicate_items(items: List[LineItem]) -> List[LineItem]:
    """Drop near-duplicate descriptions, keeping the more descriptive one in place."""
    unique: List[LineItem] = []
    for item in items:
        for index, existing in enumerate(unique):
            if _similarity(existing.description, item.description) > DUPLICATE_SIMILARITY:
                if len(item.description) > len(existing.description):
                    unique[index] = item
                break
        else:
            unique.append(item)
    return unique


def extract_line_items(lines: List[str]) -> List[LineItem]:
    """Line items in receipt order."""
    items = []
    for line in lines:
        if len(line) < 3 or _NON_ITEM_LINE.search(line) or _DATE_TIME_LINE.match(line):
            continue
        item = _parse_item_line(line)
        if item is not None:
            items.append(item)
    return deduplicate_items(items)
