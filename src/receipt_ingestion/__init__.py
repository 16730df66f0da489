# ============================================================================
# src/receipt_ingestion/__init__.py
# ============================================================================
"""
Receipt Ingestion Engine

Turns receipt images and PDFs into structured expense records: a cheap
local OCR pass, escalation to structured AI extraction when OCR confidence
is low, and field-level reconciliation of the two.
"""

__version__ = "0.1.0"
