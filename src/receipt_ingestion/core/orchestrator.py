# ============================================================================
# src/receipt_ingestion/core/orchestrator.py
# ============================================================================
"""
Receipt Pipeline Orchestrator

This is the MAIN entry point for receipt processing.

Flow:
1. Primary OCR extraction (always runs; failure is fatal)
2. Normalize the OCR text for the AI prompt
3. Escalation decision (primary confidence vs. accuracy threshold)
4. Structured AI extraction (optional; failure falls back to OCR only)
5. Field-level merge into one ExtractedReceipt
6. Diagnostics: provider, timing, cost, review flag

Each call is independent. The only things shared between concurrent calls
are the recognizer pool and, when enabled, the result cache.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp

from ..extractors.ai_extractor import StructuredAIExtractor
from ..extractors.ocr_extractor import PrimaryOCRExtractor
from ..extractors.recognizers import RecognizerPool
from ..models.enums import PipelineStage
from ..models.receipt import ParsedReceipt, PrimaryResult
from ..models.results import PipelineDiagnostics, PipelineResult
from ..utils.exceptions import DocumentFetchError, PrimaryExtractionError
from ..utils.image_utils import SUFFIX_MIME_TYPES, is_pdf, is_supported_image, normalize_mime_type
from ..utils.logging import LogAdapter, log_performance
from ..utils.text_normalizer import normalize
from .cache import ResultCache
from .config import get_config
from .confidence import ConfidenceThresholds, needs_review, should_escalate
from .merge import merge

DEFAULT_FETCH_TIMEOUT = 30

logger = logging.getLogger(__name__)


class ReceiptPipeline:
    """
    Receipt OCR extraction and confidence-reconciliation pipeline.

    Components are built from config unless injected. The recognizer pool
    is owned here and shared with the OCR extractor.

    Example:
        pipeline = ReceiptPipeline(get_config())
        result = await pipeline.process(image_bytes, "image/jpeg")
        print(result.receipt.vendor, result.diagnostics.provider)
        await pipeline.close()
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        ocr_extractor: Optional[PrimaryOCRExtractor] = None,
        ai_extractor: Optional[StructuredAIExtractor] = None,
        recognizer_pool: Optional[RecognizerPool] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.config = config if config is not None else get_config()
        self.logger = logging.getLogger(__name__)

        self.accuracy_threshold = self.config.get('accuracy_threshold', 80.0)
        self.review_threshold = self.config.get('review_threshold', 70.0)
        self.cost_threshold = self.config.get('cost_threshold', 0.01)
        self.fetch_timeout = self.config.get('fetch_timeout', DEFAULT_FETCH_TIMEOUT)
        self.confidence_thresholds = ConfidenceThresholds()

        self.recognizer_pool = recognizer_pool or RecognizerPool()
        self.ocr_extractor = ocr_extractor or PrimaryOCRExtractor(self.config, self.recognizer_pool)

        if ai_extractor is not None:
            self.ai_extractor = ai_extractor
        elif self.config.get('enable_ai', True):
            self.ai_extractor = StructuredAIExtractor(self.config)
        else:
            self.ai_extractor = None

        if cache is not None:
            self.cache = cache
        elif self.config.get('enable_caching', False):
            self.cache = ResultCache(max_size=self.config.get('cache_max_size', 100))
        else:
            self.cache = None

        self.logger.info(
            f"Receipt pipeline initialized: threshold={self.accuracy_threshold}, "
            f"ai={'on' if self.ai_available else 'off'}, cache={'on' if self.cache else 'off'}"
        )

    @property
    def ai_available(self) -> bool:
        return self.ai_extractor is not None and self.ai_extractor.is_available()

    # ========================================================================
    # MAIN PROCESSING PIPELINE
    # ========================================================================

    async def process(
        self,
        image: bytes,
        mime_type: str,
        request_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PipelineResult:
        """
        Process one receipt document.

        Args:
            image: Raw document bytes (image or PDF)
            mime_type: Content type of the bytes
            request_id: Correlation id for logs (generated when omitted)
            today: Reference date for date fallbacks (default: today)

        Raises:
            PrimaryExtractionError: the OCR pass failed; no receipt is produced
        """
        start_time = time.perf_counter()
        log = LogAdapter(self.logger, {'request_id': request_id or uuid.uuid4().hex[:8]})
        stages: List[str] = [PipelineStage.START.value]

        cache_key = None
        if self.cache is not None:
            cache_key = ResultCache.make_key(
                image, normalize_mime_type(mime_type), (today or date.today()).isoformat()
            )
            cached = self.cache.get(cache_key)
            if cached is not None:
                log.info("Returning cached result")
                return replace(cached, diagnostics=replace(cached.diagnostics, cached=True))

        try:
            primary = await self.ocr_extractor.extract(image, mime_type, today=today)
        except PrimaryExtractionError as e:
            log.error(f"Primary extraction failed [{e.code}] ({e.provider}): {e}")
            raise
        stages.append(PipelineStage.PRIMARY_EXTRACTED.value)

        cleaned_text = normalize(primary.raw_text)
        stages.append(PipelineStage.NORMALIZED.value)

        ai_result: Optional[ParsedReceipt] = None
        ai_error: Optional[str] = None
        ai_attempted = False
        estimated_cost = 0.0
        provider = primary.engine

        if should_escalate(primary.confidence, self.accuracy_threshold) and self.ai_available:
            stages.append(PipelineStage.ESCALATED.value)
            ai_attempted = True
            provider = f"{primary.engine}+{self.ai_extractor.provider}"
            log.info(
                f"Escalating to AI: confidence {primary.confidence:.1f} < {self.accuracy_threshold}"
            )

            outcome = await self.ai_extractor.try_extract_structured(
                cleaned_text, hint=self._hint(primary), today=today
            )
            if outcome.ok:
                ai_result = outcome.receipt
                estimated_cost = ai_result.usage.cost
                provider = f"{primary.engine}+{ai_result.usage.provider}"
            else:
                if outcome.error.provider:
                    provider = f"{primary.engine}+{outcome.error.provider}"
                ai_error = f"{outcome.error.code}: {outcome.error}"
                log.warning(
                    f"AI extraction failed, falling back to OCR only "
                    f"({type(outcome.error).__name__}: {outcome.error})"
                )
        else:
            stages.append(PipelineStage.SKIPPED.value)

        receipt = merge(primary, ai_result, today=today, ai_attempted=ai_attempted)
        stages.append(PipelineStage.MERGED.value)

        if estimated_cost > self.cost_threshold:
            log.warning(
                f"Processing cost ${estimated_cost:.4f} exceeds threshold ${self.cost_threshold:.4f}"
            )

        stages.append(PipelineStage.DONE.value)
        processing_time_ms = (time.perf_counter() - start_time) * 1000
        review = needs_review(receipt.confidence, self.review_threshold)

        diagnostics = PipelineDiagnostics(
            provider=provider,
            processing_time_ms=processing_time_ms,
            estimated_cost=estimated_cost,
            primary_confidence=primary.confidence,
            escalated=ai_attempted,
            ai_error=ai_error,
            stages=stages,
            needs_review=review,
            confidence_level=self.confidence_thresholds.get_level(receipt.confidence),
        )
        result = PipelineResult(receipt=receipt, diagnostics=diagnostics)

        log.info(
            f"Processed receipt via {provider} in {processing_time_ms:.0f}ms: "
            f"method={receipt.processing_method.value}, confidence={receipt.confidence:.1f}"
            + (", needs review" if review else "")
        )

        if self.cache is not None:
            self.cache.set(cache_key, result)

        return result

    async def process_file(self, path: Path, **kwargs) -> PipelineResult:
        """Process a receipt stored on disk; the MIME type comes from the suffix."""
        path = Path(path)
        mime_type = SUFFIX_MIME_TYPES.get(path.suffix.lower(), 'application/octet-stream')
        data = await asyncio.get_running_loop().run_in_executor(None, path.read_bytes)
        return await self.process(data, mime_type, **kwargs)

    async def process_url(self, url: str, **kwargs) -> PipelineResult:
        """
        Download a receipt and process it.

        Raises:
            DocumentFetchError: the download failed
            PrimaryExtractionError: the OCR pass failed
        """
        data, mime_type = await self._fetch(url)
        return await self.process(data, mime_type, **kwargs)

    @log_performance(logger, "Document fetch")
    async def _fetch(self, url: str):
        timeout = aiohttp.ClientTimeout(total=self.fetch_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        raise DocumentFetchError(
                            f"Failed to fetch {url}: HTTP {response.status}", provider="http"
                        )
                    data = await response.read()
                    content_type = response.headers.get('Content-Type', '')
        except DocumentFetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DocumentFetchError(
                f"Failed to fetch {url}: {type(e).__name__}: {e}", provider="http"
            ) from e

        mime_type = normalize_mime_type(content_type)
        if not (is_pdf(mime_type) or is_supported_image(mime_type)):
            suffix = Path(urlparse(url).path).suffix.lower()
            mime_type = SUFFIX_MIME_TYPES.get(suffix, mime_type)

        self.logger.info(f"Fetched {len(data)} bytes ({mime_type or 'unknown type'})")
        return data, mime_type

    @staticmethod
    def _hint(primary: PrimaryResult) -> Dict[str, Any]:
        """Primary field guess passed to the AI prompt."""
        return {
            "vendor": primary.vendor,
            "date": primary.date,
            "total": primary.total_amount,
            "items": len(primary.line_items),
        }

    async def close(self):
        """Release network resources held by the AI backends."""
        if self.ai_extractor is not None:
            await self.ai_extractor.close()
