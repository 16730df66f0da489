# ============================================================================
# src/receipt_ingestion/extractors/__init__.py
# ============================================================================
"""
Receipt Extraction Module

- Primary OCR extraction (Tesseract via a recognizer pool, pypdfium2 for PDFs)
- Rule-based field parsing of OCR text
- Structured AI extraction (OpenAI / Azure / Ollama)
"""

from .recognizers import BaseRecognizer, RecognizedText, RecognizerPool, TesseractRecognizer
from .field_parser import FieldGuess, parse_receipt_text
from .ocr_extractor import PrimaryOCRExtractor
from .ai_extractor import StructuredAIExtractor
