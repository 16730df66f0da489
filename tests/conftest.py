# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

No Tesseract binary or network access is needed: OCR goes through a fake
recognizer injected via the RecognizerPool, and AI calls through a fake
completion client injected into the StructuredAIExtractor.
"""

import asyncio
import json
from datetime import date
from io import BytesIO

import pytest
from PIL import Image

from src.receipt_ingestion.extractors.recognizers import (
    BaseRecognizer,
    RecognizedText,
    RecognizerPool,
)
from src.receipt_ingestion.llm.base import BackendType, BaseCompletionClient, CompletionResponse


CLEAR_RECEIPT_TEXT = """WHOLE FOODS MARKET
123 Main Street
03/14/2024 12:45
Organic Bananas 3.49
Coffee Beans 12.99
Notebook Paper 4.50
SUBTOTAL 20.98
TAX 1.68
TOTAL 22.66
VISA 22.66"""

BLURRY_RECEIPT_TEXT = """TRADER J0E'S
03/14/2024
## ~~ .. ##
TOTAL 47.82"""

TRADER_JOES_AI_RESPONSE = {
    "vendor": "Trader Joe's",
    "date": "2024-03-14",
    "total": 47.82,
    "subtotal": 44.28,
    "tax": 3.54,
    "currency": "usd",
    "items": [
        {"desc": "Organic Bananas", "price": 1.99, "quantity": 1},
        {"desc": "Mandarin Chicken", "price": 5.49, "quantity": 1},
        {"desc": "Cold Brew Coffee", "price": 8.98, "quantity": 2},
        {"desc": "Sourdough Bread", "price": 3.99, "quantity": 1},
        {"desc": "Greek Yogurt", "price": 11.94, "quantity": 6},
        {"desc": "Dark Chocolate", "price": 11.89, "quantity": 1},
    ],
}


class FakeRecognizer(BaseRecognizer):
    """
    Recognizer returning canned results.

    Each call returns the next result; the last one repeats. Images passed
    in are kept for inspection.
    """

    def __init__(self, results, language: str = "eng"):
        super().__init__(language)
        self.results = list(results)
        self.images = []
        self.error = None

    @property
    def engine_name(self) -> str:
        return "fake-ocr"

    def recognize(self, image):
        self.images.append(image)
        if self.error is not None:
            raise self.error
        index = min(len(self.images), len(self.results)) - 1
        return self.results[index]

    @property
    def calls(self) -> int:
        return len(self.images)


class FakeCompletionClient(BaseCompletionClient):
    """Completion client returning canned text, raising, or stalling."""

    def __init__(
        self,
        text="",
        error=None,
        delay: float = 0.0,
        configured: bool = True,
        model: str = "gpt-4o-mini",
        prompt_tokens: int = 500,
        completion_tokens: int = 150,
        backend: BackendType = BackendType.OPENAI,
    ):
        super().__init__({})
        self.backend = backend
        self.text = text
        self.error = error
        self.delay = delay
        self.configured = configured
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.calls = []
        self.closed = False

    @property
    def backend_type(self) -> BackendType:
        return self.backend

    @property
    def model_name(self) -> str:
        return self.model

    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, system, prompt, max_tokens=400, temperature=0.1, json_mode=True):
        self.calls.append({
            "system": system,
            "prompt": prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "json_mode": json_mode,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return CompletionResponse(
            text=self.text,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            model=self.model,
            provider=self.provider,
        )

    async def health_check(self):
        return {"healthy": True, "backend": self.provider, "model": self.model, "details": "fake"}

    async def close(self):
        self.closed = True


def make_pool(recognizer: BaseRecognizer) -> RecognizerPool:
    """Recognizer pool that always hands out the given recognizer."""
    return RecognizerPool(factory=lambda language: recognizer)


@pytest.fixture
def today():
    """Fixed reference date"""
    return date(2024, 3, 20)


@pytest.fixture
def clear_receipt_text():
    """Legible OCR output of a grocery receipt"""
    return CLEAR_RECEIPT_TEXT


@pytest.fixture
def blurry_receipt_text():
    """Barely legible OCR output: vendor and total only"""
    return BLURRY_RECEIPT_TEXT


@pytest.fixture
def trader_joes_response():
    """Valid AI reply for the blurry receipt"""
    return json.dumps(TRADER_JOES_AI_RESPONSE)


@pytest.fixture
def png_bytes():
    """Small blank PNG image"""
    buffer = BytesIO()
    Image.new("RGB", (400, 600), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes():
    """One-page letter-size PDF with receipt text"""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    y = 720
    for line in CLEAR_RECEIPT_TEXT.splitlines():
        pdf.drawString(72, y, line)
        y -= 18
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def corrupt_pdf_bytes():
    """Bytes that claim to be a PDF but are not"""
    return b"%PDF-1.4\nthis is not a real pdf document\n%%EOF"


@pytest.fixture
def base_config():
    """Pipeline config dict with a short AI timeout"""
    return {
        "accuracy_threshold": 80.0,
        "review_threshold": 70.0,
        "cost_threshold": 0.01,
        "ai_timeout": 0.2,
        "enable_ai": True,
        "enable_caching": False,
        "ocr_timeout": 10.0,
        "ocr_enhance_below": 40.0,
    }


@pytest.fixture
def clear_recognizer(clear_receipt_text):
    """Recognizer reading the clear receipt at 92% confidence"""
    return FakeRecognizer([RecognizedText(clear_receipt_text, 92.0, 30)])


@pytest.fixture
def blurry_recognizer(blurry_receipt_text):
    """Recognizer reading the blurry receipt at 45% confidence"""
    return FakeRecognizer([RecognizedText(blurry_receipt_text, 45.0, 8)])


@pytest.fixture
def fake_recognizer():
    """FakeRecognizer class, for tests that need custom results"""
    return FakeRecognizer


@pytest.fixture
def fake_client():
    """FakeCompletionClient class"""
    return FakeCompletionClient


@pytest.fixture
def pool_for():
    """Build a RecognizerPool around a given recognizer"""
    return make_pool
