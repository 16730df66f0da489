# ============================================================================
# src/receipt_ingestion/llm/client.py
# ============================================================================
"""
Completion client factory.

Selects the backend from config['primary_provider']:
    openai  -> OpenAICompletionClient (hosted)
    azure   -> OpenAICompletionClient (Azure deployment)
    ollama  -> OllamaCompletionClient (local server)
"""

import logging
from typing import Any, Dict, Optional

from ..utils.exceptions import ConfigurationError
from .base import BackendType, BaseCompletionClient
from .ollama_client import OllamaCompletionClient
from .openai_client import OpenAICompletionClient

logger = logging.getLogger(__name__)


def create_client(config: Optional[Dict[str, Any]] = None) -> BaseCompletionClient:
    """
    Create a completion client for the configured provider.

    Raises:
        ConfigurationError: unknown provider
    """
    config = config or {}
    provider = str(config.get('primary_provider', BackendType.OPENAI.value)).strip().lower()

    if provider == BackendType.OPENAI.value:
        client = OpenAICompletionClient(config)
    elif provider == BackendType.AZURE.value:
        client = OpenAICompletionClient(config, use_azure=True)
    elif provider == BackendType.OLLAMA.value:
        client = OllamaCompletionClient(config)
    else:
        supported = ", ".join(b.value for b in BackendType)
        raise ConfigurationError(
            f"Unknown AI provider '{provider}'. Supported: {supported}",
            provider=provider,
        )

    logger.info(f"Using {client.provider} completion backend ({client.model_name})")
    return client
