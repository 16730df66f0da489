# ============================================================================
# src/receipt_ingestion/llm/base.py
# ============================================================================
"""
Base Completion Client Interface

Defines the abstract interface that all completion backends implement.
Supported backends:
- openai: hosted OpenAI API
- azure: Azure OpenAI deployment
- ollama: local Ollama server
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# USD per 1M tokens: (input, output)
MODEL_PRICING = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
}


class BackendType(str, Enum):
    """Supported completion backends."""
    OPENAI = "openai"
    AZURE = "azure"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class CompletionResponse:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str = ""
    provider: str = ""
    latency: float = 0.0    # seconds


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """
    Estimated USD cost of one call.

    Dated snapshots ("gpt-4o-mini-2024-07-18") use their base model's price.
    Unknown models (local backends) cost nothing.
    """
    pricing = None
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if model == name or (model or "").startswith(name + "-"):
            pricing = MODEL_PRICING[name]
            break
    if pricing is None:
        return 0.0
    input_price, output_price = pricing
    return (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000


class BaseCompletionClient(ABC):
    """
    Abstract base class for chat completion clients.

    All backends must implement:
    - complete(): Async chat completion
    - health_check(): Verify backend is available
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def backend_type(self) -> BackendType:
        """Return the backend type."""
        pass

    @property
    def provider(self) -> str:
        return self.backend_type.value

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        pass

    def is_configured(self) -> bool:
        """Whether the client has what it needs to make calls (keys, endpoints)."""
        return True

    @abstractmethod
    async def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
        json_mode: bool = True,
    ) -> CompletionResponse:
        """
        Run one chat completion.

        Args:
            system: System instruction
            prompt: User message
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)
            json_mode: Constrain output to a JSON object

        Raises:
            Any transport error; callers translate them.
        """
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """
        Check if the backend is available and ready.

        Returns:
            {
                "healthy": bool,
                "backend": str,
                "model": str,
                "details": str
            }
        """
        pass

    async def close(self):
        """Release network resources."""
        return None
