# ============================================================================
# src/receipt_ingestion/llm/__init__.py
# ============================================================================
"""
Completion backends for the structured AI extraction stage.
"""

from .base import (
    BackendType,
    BaseCompletionClient,
    CompletionResponse,
    MODEL_PRICING,
    estimate_cost,
)
from .client import create_client
from .ollama_client import OllamaCompletionClient
from .openai_client import OpenAICompletionClient
from .prompts import RECEIPT_SYSTEM_PROMPT, build_receipt_prompt

__all__ = [
    "BackendType",
    "BaseCompletionClient",
    "CompletionResponse",
    "MODEL_PRICING",
    "estimate_cost",
    "create_client",
    "OllamaCompletionClient",
    "OpenAICompletionClient",
    "RECEIPT_SYSTEM_PROMPT",
    "build_receipt_prompt",
]
