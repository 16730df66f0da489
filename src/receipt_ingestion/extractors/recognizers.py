# ============================================================================
# src/receipt_ingestion/extractors/recognizers.py
# ============================================================================
"""
Text recognizers and the recognizer pool.

A recognizer turns a PIL image into text plus a mean word confidence (0-100).
The pool hands out one lazily-created recognizer per language so the engine
setup cost is paid once per process; it is created by the pipeline's owner
and injected, never held in a module global.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import pytesseract
from PIL import Image

from ..utils.exceptions import RecognitionError

logger = logging.getLogger(__name__)

# OEM 1 = LSTM engine, PSM 6 = single uniform block of text (receipt columns)
DEFAULT_TESSERACT_CONFIG = "--oem 1 --psm 6 -c preserve_interword_spaces=1"


@dataclass(frozen=True)
class RecognizedText:
    text: str
    confidence: float   # mean word confidence, 0-100
    word_count: int = 0


class BaseRecognizer(ABC):
    """
    Abstract OCR engine.

    Implementations must be safe to call from executor threads.
    """

    def __init__(self, language: str = "eng"):
        self.language = language
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Engine identifier used in diagnostics."""
        pass

    @abstractmethod
    def recognize(self, image: Image.Image) -> RecognizedText:
        """
        Recognize text in an image. Blocking.

        Raises:
            RecognitionError: the engine failed or crashed
        """
        pass


class TesseractRecognizer(BaseRecognizer):
    """
    Tesseract via pytesseract.

    Uses image_to_data so each word carries its own confidence; line structure
    is rebuilt from Tesseract's block/paragraph/line numbering.
    """

    def __init__(self, language: str = "eng", config: str = DEFAULT_TESSERACT_CONFIG):
        super().__init__(language)
        self.config = config

    @property
    def engine_name(self) -> str:
        return "tesseract"

    def recognize(self, image: Image.Image) -> RecognizedText:
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError, OSError) as e:
            raise RecognitionError(f"Tesseract failed: {e}", provider=self.engine_name) from e

        lines: Dict[tuple, List[str]] = {}
        confidences: List[float] = []

        for i, raw_conf in enumerate(data['conf']):
            text = str(data['text'][i]).strip()
            try:
                conf = float(raw_conf)
            except (TypeError, ValueError):
                continue
            if conf < 0 or not text:
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(text)
            confidences.append(conf)

        # dicts keep insertion order, which follows Tesseract's reading order
        full_text = "\n".join(" ".join(words) for words in lines.values())
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        self.logger.debug(f"Tesseract recognized {len(confidences)} words, confidence={avg_confidence:.1f}")
        return RecognizedText(text=full_text, confidence=avg_confidence, word_count=len(confidences))


class RecognizerPool:
    """
    One recognizer per language, created on first use.

    Creation is guarded by a lock; once created, recognizers are only read.
    """

    def __init__(self, factory: Optional[Callable[[str], BaseRecognizer]] = None):
        self._factory = factory or TesseractRecognizer
        self._recognizers: Dict[str, BaseRecognizer] = {}
        self._lock = threading.Lock()

    def get(self, language: str = "eng") -> BaseRecognizer:
        recognizer = self._recognizers.get(language)
        if recognizer is not None:
            return recognizer

        with self._lock:
            recognizer = self._recognizers.get(language)
            if recognizer is None:
                recognizer = self._factory(language)
                self._recognizers[language] = recognizer
                logger.info(f"Initialized {recognizer.engine_name} recognizer for '{language}'")
            return recognizer

    def __len__(self) -> int:
        return len(self._recognizers)
