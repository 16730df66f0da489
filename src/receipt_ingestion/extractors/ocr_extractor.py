# ============================================================================
# src/receipt_ingestion/extractors/ocr_extractor.py
# ============================================================================
"""
Primary OCR Extraction for Receipt Images and PDFs

Produces raw text, a recognizer-level confidence and a best-effort field
guess for one document:
1. PDF -> first page rasterized with pypdfium2
2. Image -> decoded with Pillow (EXIF orientation, downscaling)
3. Recognition with a pooled recognizer (Tesseract by default), retried on
   an enhanced image when the first pass is barely legible
4. Field guess from the recognized lines

Blocking work runs in the default executor under a timeout. Every failure
here is fatal to the request.
"""

import asyncio
import logging
from datetime import date
from functools import partial
from typing import Any, Dict, Optional

from PIL import Image

from ..models.receipt import PrimaryResult
from ..utils.exceptions import (
    PrimaryExtractionError,
    RasterizationError,
    RecognitionError,
    UnsupportedMediaTypeError,
)
from ..utils.image_utils import (
    DEFAULT_PDF_DPI,
    OCR_MAX_DIMENSION,
    enhance_image,
    is_pdf,
    is_supported_image,
    load_image_for_ocr,
    normalize_mime_type,
    render_pdf_first_page,
)
from .field_parser import parse_receipt_text
from .recognizers import RecognizedText, RecognizerPool


class PrimaryOCRExtractor:
    """
    Primary (cheap, local) extractor.

    Config options:
        ocr_language: Tesseract language (default: eng)
        ocr_dpi: PDF render resolution (default: 200)
        ocr_timeout: Seconds allowed per blocking step (default: 60)
        ocr_enhance_below: Retry on an enhanced image below this confidence (default: 40)
        ocr_max_dimension: Downscale images larger than this (default: 2500)
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        recognizer_pool: Optional[RecognizerPool] = None,
    ):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)
        self.recognizer_pool = recognizer_pool or RecognizerPool()

        self.language = self.config.get('ocr_language', 'eng')
        self.dpi = self.config.get('ocr_dpi', DEFAULT_PDF_DPI)
        self.timeout = self.config.get('ocr_timeout', 60.0)
        self.enhance_below = self.config.get('ocr_enhance_below', 40.0)
        self.max_dimension = self.config.get('ocr_max_dimension', OCR_MAX_DIMENSION)

    async def extract(
        self,
        image: bytes,
        mime_type: str,
        today: Optional[date] = None,
    ) -> PrimaryResult:
        """
        Extract text and a field guess from a receipt document.

        Raises:
            UnsupportedMediaTypeError: neither image/* nor application/pdf
            RasterizationError: the PDF could not be rendered
            RecognitionError: undecodable image, engine crash or timeout
        """
        mime = normalize_mime_type(mime_type)
        recognizer = self.recognizer_pool.get(self.language)

        if is_pdf(mime):
            page = await self._run_blocking(
                partial(render_pdf_first_page, image, self.dpi),
                RasterizationError,
                "PDF rasterization",
                "pdfium",
            )
            recognized = await self._recognize(page)
        elif is_supported_image(mime):
            page = await self._run_blocking(
                partial(load_image_for_ocr, image, self.max_dimension),
                RecognitionError,
                "image decoding",
                recognizer.engine_name,
            )
            recognized = await self._recognize(page)

            if recognized.confidence < self.enhance_below:
                self.logger.info(
                    f"Low OCR confidence ({recognized.confidence:.1f}), retrying on enhanced image"
                )
                enhanced = enhance_image(page, aggressive=True)
                retry = await self._recognize(enhanced)
                if retry.confidence > recognized.confidence:
                    recognized = retry
        else:
            raise UnsupportedMediaTypeError(mime_type or "unknown", provider=recognizer.engine_name)

        guess = parse_receipt_text(recognized.text, today=today)

        self.logger.info(
            f"Primary OCR: {recognized.word_count} words, {len(recognized.text)} chars, "
            f"confidence={recognized.confidence:.1f}"
        )

        return PrimaryResult(
            raw_text=recognized.text,
            confidence=recognized.confidence,
            vendor=guess.vendor,
            date=guess.date,
            total_amount=guess.total,
            subtotal=guess.subtotal,
            tax=guess.tax,
            line_items=tuple(guess.line_items),
            engine=recognizer.engine_name,
        )

    async def _recognize(self, page: Image.Image) -> RecognizedText:
        recognizer = self.recognizer_pool.get(self.language)
        return await self._run_blocking(
            partial(recognizer.recognize, page),
            RecognitionError,
            "text recognition",
            recognizer.engine_name,
        )

    async def _run_blocking(self, func, error_cls, operation: str, provider: str):
        """Run a blocking call in the executor, mapping timeouts and crashes to error_cls."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, func), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise error_cls(f"{operation} timed out after {self.timeout}s", provider=provider) from e
        except PrimaryExtractionError:
            raise
        except Exception as e:
            raise error_cls(f"{operation} failed: {type(e).__name__}: {e}", provider=provider) from e
