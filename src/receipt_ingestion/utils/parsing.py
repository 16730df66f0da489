# ============================================================================
# src/receipt_ingestion/utils/parsing.py
# ============================================================================
"""
Value parsing helpers shared by the field parser, the AI extractor and the
receipt model.
"""

import math
import re
from datetime import date
from typing import Any, Optional

from dateutil import parser as date_parser

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

_AMOUNT_NOISE = re.compile(r'[$,\s]|USD|CAD|EUR', re.IGNORECASE)


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a monetary value.

    Accepts numbers and strings such as "$1,234.50". Returns None when the
    value cannot be read as a finite number. Booleans are not amounts.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _AMOUNT_NOISE.sub('', value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_amount(value: Any) -> float:
    """Coerce a monetary value to a finite, non-negative, 2-decimal float."""
    number = parse_amount(value)
    if number is None or number < 0:
        return 0.0
    return round(number, 2)


def clamp_confidence(value: Any) -> float:
    """Clamp a confidence score into [0, 100]; unreadable values become 0."""
    number = parse_amount(value)
    if number is None:
        return 0.0
    return max(0.0, min(100.0, number))


def today_iso(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def normalize_date(value: Any, today: Optional[date] = None) -> str:
    """
    Re-parse a date in any common receipt format to YYYY-MM-DD.

    Falls back to today's date when the value is missing or unreadable.
    """
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return today_iso(today)

    text = value.strip()
    if ISO_DATE_PATTERN.match(text):
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            return today_iso(today)

    try:
        parsed = date_parser.parse(text, fuzzy=True)
    except (ValueError, OverflowError):
        return today_iso(today)

    return parsed.date().isoformat()
