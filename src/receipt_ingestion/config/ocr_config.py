# ============================================================================
# src/receipt_ingestion/config/ocr_config.py
# ============================================================================
"""
Primary OCR Settings
- Tesseract language
- PDF render resolution
- Recognition timeout
- Low-confidence enhancement retry
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class OCRSettings(BaseSettings):
    OCR_LANGUAGE: str = Field(
        default="eng",
        description="Tesseract language code"
    )
    OCR_DPI: int = Field(
        default=200,
        ge=72, le=600,
        description="Resolution used to rasterize PDF receipts"
    )
    OCR_TIMEOUT: float = Field(
        default=60.0,
        gt=0.0,
        description="Maximum time for one recognition pass (seconds)"
    )
    OCR_ENHANCE_BELOW: float = Field(
        default=40.0,
        ge=0.0, le=100.0,
        description="Retry recognition on an enhanced image when confidence is below this"
    )
    OCR_MAX_DIMENSION: int = Field(
        default=2500,
        ge=500,
        description="Images larger than this (px) are downscaled before recognition"
    )
