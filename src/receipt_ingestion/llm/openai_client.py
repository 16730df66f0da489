# ============================================================================
# src/receipt_ingestion/llm/openai_client.py
# ============================================================================
"""
OpenAI Completion Client

Chat completions against the hosted OpenAI API or an Azure OpenAI
deployment. The SDK's async client is created lazily; cancelling complete()
(e.g. from asyncio.wait_for) aborts the HTTP request and closes its
connection. The SDK does not retry on its own: retries and provider
fallback belong to the extractor.

Usage:
    client = OpenAICompletionClient(config)
    response = await client.complete(system, prompt, max_tokens=400)
"""

import time
from typing import Any, Dict, Optional

from openai import APITimeoutError, AsyncAzureOpenAI, AsyncOpenAI

from ..utils.exceptions import AITimeoutError, ConfigurationError
from .base import BackendType, BaseCompletionClient, CompletionResponse


class OpenAICompletionClient(BaseCompletionClient):
    """
    OpenAI / Azure OpenAI chat completion client.

    Config options:
        openai_api_key: Hosted API key
        openai_base_url: Alternative API base URL (default: SDK default)
        ai_model: Model name (default: gpt-4o-mini)
        ai_timeout: Per-request timeout in seconds (default: 120)
        azure_endpoint / azure_api_key / azure_deployment / azure_api_version:
            Azure settings, used when use_azure=True
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, use_azure: bool = False):
        super().__init__(config)
        self._client = None
        self.use_azure = use_azure
        self.timeout = self.config.get('ai_timeout', self.config.get('timeout_ms', 120000) / 1000.0)

        if use_azure:
            self.azure_endpoint = self.config.get('azure_endpoint', '')
            self.azure_api_key = self.config.get('azure_api_key', '')
            self.azure_api_version = self.config.get('azure_api_version', '2024-02-01')
            self._model_name = self.config.get('azure_deployment') or self.config.get('ai_model', 'gpt-4o-mini')
            if not self.azure_endpoint or not self.azure_api_key:
                self.logger.warning(
                    "Azure OpenAI credentials not configured. "
                    "Set AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_API_KEY."
                )
        else:
            self.api_key = self.config.get('openai_api_key', '')
            self.base_url = self.config.get('openai_base_url') or None
            self._model_name = self.config.get('ai_model', 'gpt-4o-mini')
            if not self.api_key:
                self.logger.warning("OpenAI API key not configured. Set OPENAI_API_KEY.")

    @property
    def backend_type(self) -> BackendType:
        return BackendType.AZURE if self.use_azure else BackendType.OPENAI

    @property
    def model_name(self) -> str:
        return self._model_name

    def is_configured(self) -> bool:
        if self.use_azure:
            return bool(self.azure_endpoint and self.azure_api_key)
        return bool(self.api_key)

    @property
    def client(self):
        """Lazy load the SDK client."""
        if self._client is None:
            if not self.is_configured():
                raise ConfigurationError(
                    f"{self.provider} credentials are not configured", provider=self.provider
                )
            if self.use_azure:
                self._client = AsyncAzureOpenAI(
                    azure_endpoint=self.azure_endpoint,
                    api_key=self.azure_api_key,
                    api_version=self.azure_api_version,
                    timeout=self.timeout,
                    max_retries=0,
                )
                self.logger.info(f"Azure OpenAI client initialized: deployment={self._model_name}")
            else:
                self._client = AsyncOpenAI(
                    api_key=self.api_key,
                    base_url=self.base_url,
                    timeout=self.timeout,
                    max_retries=0,
                )
                self.logger.info(f"OpenAI client initialized: model={self._model_name}")
        return self._client

    async def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
        json_mode: bool = True,
    ) -> CompletionResponse:
        start_time = time.perf_counter()
        client = self.client

        kwargs = {}
        if json_mode:
            kwargs['response_format'] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(
                model=self._model_name,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except APITimeoutError as e:
            raise AITimeoutError(
                f"{self.provider} request timed out after {self.timeout}s", provider=self.provider
            ) from e

        text = response.choices[0].message.content if response.choices else ""
        usage = response.usage
        latency = time.perf_counter() - start_time

        self.logger.info(
            f"{self.provider} completion in {latency:.2f}s "
            f"(prompt={getattr(usage, 'prompt_tokens', 0)}, completion={getattr(usage, 'completion_tokens', 0)})"
        )

        return CompletionResponse(
            text=(text or "").strip(),
            prompt_tokens=getattr(usage, 'prompt_tokens', 0) or 0,
            completion_tokens=getattr(usage, 'completion_tokens', 0) or 0,
            model=self._model_name,
            provider=self.provider,
            latency=latency,
        )

    async def health_check(self) -> Dict[str, Any]:
        if not self.is_configured():
            return {
                "healthy": False,
                "backend": self.provider,
                "model": self._model_name,
                "details": "Credentials not configured",
            }

        try:
            await self.client.models.list()
            return {
                "healthy": True,
                "backend": self.provider,
                "model": self._model_name,
                "details": "API reachable",
            }
        except Exception as e:
            return {
                "healthy": False,
                "backend": self.provider,
                "model": self._model_name,
                "details": f"Health check failed: {e}",
            }

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
