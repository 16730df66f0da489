# ============================================================================
# src/receipt_ingestion/utils/text_normalizer.py
# ============================================================================
"""
Text Normalization Utilities

Cleans up raw OCR text before it is sent to the structured AI extractor:
- Drops characters outside the receipt alphabet (letters, digits, whitespace
  and $ . - : ( ) / ,)
- Collapses whitespace runs to a single space
- Bounds the result to MAX_NORMALIZED_LENGTH characters
"""

import re
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Prompt budget for the AI stage
MAX_NORMALIZED_LENGTH = 2000

_DISALLOWED_CHARS = re.compile(r'[^\w\s$.\-:()/,]')
_WHITESPACE_RUN = re.compile(r'\s+')


def normalize(raw_text: Optional[str]) -> str:
    """
    Normalize OCR text into a single bounded line.

    Pure and total: any input, including None, yields a string of at most
    MAX_NORMALIZED_LENGTH characters, and normalize(normalize(x)) == normalize(x).
    """
    if not raw_text:
        return ""

    text = _DISALLOWED_CHARS.sub('', raw_text)
    text = _WHITESPACE_RUN.sub(' ', text).strip()

    if len(text) > MAX_NORMALIZED_LENGTH:
        # Truncation can leave a trailing space behind
        text = text[:MAX_NORMALIZED_LENGTH].rstrip()

    return text


def split_lines(raw_text: Optional[str]) -> List[str]:
    """Split OCR text into trimmed, non-empty lines."""
    if not raw_text:
        return []
    lines = []
    for line in raw_text.splitlines():
        line = _WHITESPACE_RUN.sub(' ', line).strip()
        if line:
            lines.append(line)
    return lines
