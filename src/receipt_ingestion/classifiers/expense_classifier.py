# ============================================================================
# src/receipt_ingestion/classifiers/expense_classifier.py
# ============================================================================
"""
Expense Classifier

Keyword-based expense categorization:
- categorize_item: one line item description -> category
- categorize_receipt: vendor rules first, then the most common item category
"""

import logging
from collections import Counter
from typing import Iterable, Optional

from ..constants.expense_categories import (
    ITEM_CATEGORY_RULES,
    OTHER,
    VENDOR_CATEGORY_RULES,
)

logger = logging.getLogger(__name__)


def _match_rules(text: str, rules) -> Optional[str]:
    lowered = text.lower()
    for keywords, category in rules:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def categorize_item(description: Optional[str]) -> str:
    """Category for a line item description; "Other" when no keyword matches."""
    if not description:
        return OTHER
    return _match_rules(description, ITEM_CATEGORY_RULES) or OTHER


def categorize_receipt(vendor: Optional[str], line_items: Iterable = ()) -> str:
    """
    Category for a whole receipt.

    Args:
        vendor: Final vendor name
        line_items: LineItem objects (their .category is used)
    """
    if vendor:
        category = _match_rules(vendor, VENDOR_CATEGORY_RULES)
        if category:
            return category

    counts = Counter(item.category for item in line_items if item.category)
    if not counts:
        return OTHER

    # Counter.most_common keeps first-seen order on ties
    category, _ = counts.most_common(1)[0]
    return category
