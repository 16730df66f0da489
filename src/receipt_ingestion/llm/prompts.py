# ============================================================================
# src/receipt_ingestion/llm/prompts.py
# ============================================================================
"""
Prompt templates for structured receipt parsing.
"""

import json
from typing import Any, Dict, Optional

RECEIPT_SYSTEM_PROMPT = "You are a receipt parser. Return only valid JSON."

RECEIPT_PARSE_PROMPT = """Parse this receipt text into structured data.

Receipt text:
{text}

A quick OCR pass guessed these fields (may be wrong, use only as a hint):
{hint}

Return ONLY a JSON object with exactly these fields:
{{"vendor": "store name", "date": "YYYY-MM-DD", "total": 0.00, "subtotal": 0.00, "tax": 0.00, "currency": "USD", "items": [{{"desc": "item description", "price": 0.00, "quantity": 1}}]}}

Rules:
- "total" is the final amount paid, a positive number
- "price" is the line total for the item
- Use null for subtotal or tax if not shown, [] if no items are readable
- Do not invent values"""


def format_hint(hint: Optional[Dict[str, Any]]) -> str:
    if not hint:
        return "none"
    return json.dumps(hint, default=str)


def build_receipt_prompt(cleaned_text: str, hint: Optional[Dict[str, Any]] = None) -> str:
    return RECEIPT_PARSE_PROMPT.format(text=cleaned_text, hint=format_hint(hint))
