# ============================================================================
# src/receipt_ingestion/utils/image_utils.py
# ============================================================================
"""
Image utilities for the receipt ingestion pipeline.

Provides:
- MIME type classification for uploaded documents
- OCR-optimized image loading from raw bytes (EXIF orientation, downscaling)
- PDF first-page rasterization via pypdfium2
- Contrast/sharpen enhancement for low-confidence retries
"""

import logging
from io import BytesIO
from typing import Optional

import numpy as np
import pypdfium2
from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from .exceptions import RasterizationError, RecognitionError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = 'application/pdf'

SUPPORTED_IMAGE_MIME_TYPES = {
    'image/png',
    'image/jpeg',
    'image/jpg',
    'image/tiff',
    'image/bmp',
    'image/webp',
    'image/gif',
}

# File suffix -> MIME type, used when a download has no usable content-type
SUFFIX_MIME_TYPES = {
    '.pdf': PDF_MIME_TYPE,
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
    '.bmp': 'image/bmp',
    '.webp': 'image/webp',
    '.gif': 'image/gif',
}

# Receipts photographed on phones are often 4000px+; Tesseract does best at 1500-2500px.
OCR_MAX_DIMENSION = 2500

DEFAULT_PDF_DPI = 200


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Lowercase a content-type and drop parameters such as charset."""
    if not mime_type:
        return ''
    return mime_type.split(';', 1)[0].strip().lower()


def is_pdf(mime_type: Optional[str]) -> bool:
    return normalize_mime_type(mime_type) == PDF_MIME_TYPE


def is_supported_image(mime_type: Optional[str]) -> bool:
    return normalize_mime_type(mime_type) in SUPPORTED_IMAGE_MIME_TYPES


def load_image_for_ocr(
    data: bytes,
    max_dimension: int = OCR_MAX_DIMENSION,
) -> Image.Image:
    """
    Decode image bytes with all corrections needed for reliable OCR.

    Handles:
    1. EXIF orientation correction (phone photos taken in portrait)
    2. Downscaling oversized images
    3. Color mode conversion to RGB

    Raises:
        RecognitionError: bytes are not a decodable image
    """
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RecognitionError(f"Could not decode image: {e}", provider="tesseract") from e

    try:
        image = ImageOps.exif_transpose(image)
    except Exception as e:
        logger.warning(f"EXIF transpose failed (non-fatal): {e}")

    w, h = image.size
    if max(w, h) > max_dimension:
        scale = max_dimension / max(w, h)
        new_w, new_h = int(w * scale), int(h * scale)
        image = image.resize((new_w, new_h), Image.LANCZOS)
        logger.info(f"Resized {w}x{h} -> {new_w}x{new_h} for OCR")

    if image.mode not in ('RGB', 'L'):
        image = image.convert('RGB')

    logger.debug(f"Image loaded for OCR: {image.size}, mode={image.mode}")
    return image


def render_pdf_first_page(data: bytes, dpi: int = DEFAULT_PDF_DPI) -> Image.Image:
    """
    Rasterize the first page of a PDF using pypdfium2.

    Raises:
        RasterizationError: corrupt PDF, no pages, or render failure
    """
    scale = dpi / 72.0  # PDF points to pixels

    try:
        pdf = pypdfium2.PdfDocument(data)
    except Exception as e:
        raise RasterizationError(f"Could not open PDF: {e}", provider="pdfium") from e

    try:
        if len(pdf) == 0:
            raise RasterizationError("PDF has no pages", provider="pdfium")

        page = pdf[0]
        bitmap = page.render(scale=scale)
        image = bitmap.to_pil()
        # Detach from the pdfium buffer before the document is closed
        image = image.convert('RGB')
    except RasterizationError:
        raise
    except Exception as e:
        raise RasterizationError(f"Failed to convert PDF to image: {e}", provider="pdfium") from e
    finally:
        pdf.close()

    logger.debug(f"Rendered PDF page 1 at {dpi} DPI: {image.size}")
    return image


def enhance_image(image: Image.Image, aggressive: bool = False) -> Image.Image:
    """
    Enhance image quality for a second OCR attempt.

    Applies grayscale conversion, contrast enhancement and sharpening; in
    aggressive mode also an unsharp mask, a light background threshold and a
    median filter.
    """
    try:
        gray = image if image.mode == 'L' else image.convert('L')

        enhanced = ImageEnhance.Contrast(gray).enhance(1.5)
        enhanced = enhanced.filter(ImageFilter.SHARPEN)

        if aggressive:
            enhanced = ImageEnhance.Contrast(enhanced).enhance(1.3)
            enhanced = ImageEnhance.Brightness(enhanced).enhance(1.1)
            enhanced = enhanced.filter(ImageFilter.UnsharpMask(radius=2, percent=150))

            # Push light background pixels to white
            img_array = np.array(enhanced)
            img_array = np.where(img_array > 128, 255, img_array)
            enhanced = Image.fromarray(img_array.astype(np.uint8))
            enhanced = enhanced.filter(ImageFilter.MedianFilter(size=3))

        return enhanced

    except Exception as e:
        logger.warning(f"Image enhancement failed: {e}")
        return image
