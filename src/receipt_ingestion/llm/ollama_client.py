# ============================================================================
# src/receipt_ingestion/llm/ollama_client.py
# ============================================================================
"""
Ollama Completion Client

Uses a local Ollama server for receipt parsing. No per-token cost, no data
leaves the machine.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull a model: ollama pull llama3.2:3b
    3. Start server: ollama serve (or it runs automatically)
"""

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from .base import BackendType, BaseCompletionClient, CompletionResponse

DEFAULT_OLLAMA_MODEL = "llama3.2:3b"


class OllamaCompletionClient(BaseCompletionClient):
    """
    Ollama chat completion client.

    Config options:
        ollama_host: Ollama server URL (default: http://localhost:11434)
        ollama_model: Model name (default: llama3.2:3b)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('ollama_host', 'http://localhost:11434').rstrip('/')
        self._model_name = self.config.get('ollama_model', DEFAULT_OLLAMA_MODEL)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

        self.logger.info(f"Initialized Ollama client: {self.host} / {self._model_name}")

    @property
    def backend_type(self) -> BackendType:
        return BackendType.OLLAMA

    @property
    def model_name(self) -> str:
        return self._model_name

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            # Overall limit is enforced by the caller's wait_for
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=30)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def health_check(self) -> Dict[str, Any]:
        """Check if the Ollama server is running and the model is pulled."""
        try:
            session = await self._get_session()

            async with session.get(f"{self.host}/api/tags") as response:
                if response.status != 200:
                    return {
                        "healthy": False,
                        "backend": "ollama",
                        "model": self._model_name,
                        "details": f"Ollama server returned status {response.status}"
                    }

                data = await response.json()
                models = [m.get('name', '') for m in data.get('models', [])]

                if not any(self._model_name in m for m in models):
                    return {
                        "healthy": False,
                        "backend": "ollama",
                        "model": self._model_name,
                        "details": f"Model not found. Available: {models}. Run: ollama pull {self._model_name}"
                    }

                return {
                    "healthy": True,
                    "backend": "ollama",
                    "model": self._model_name,
                    "details": "Ollama server running and model available"
                }

        except aiohttp.ClientConnectorError:
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self._model_name,
                "details": f"Cannot connect to Ollama at {self.host}. Is it running? Try: ollama serve"
            }
        except Exception as e:
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self._model_name,
                "details": f"Health check failed: {str(e)}"
            }

    async def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
        json_mode: bool = True,
    ) -> CompletionResponse:
        start_time = time.perf_counter()
        session = await self._get_session()

        payload = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {
                "num_predict": max_tokens,
                "temperature": temperature,
            }
        }

        # Ollama constrains output to valid JSON
        if json_mode:
            payload["format"] = "json"

        try:
            async with session.post(f"{self.host}/api/chat", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"Ollama error ({response.status}): {error_text}")
                data = await response.json()
        except aiohttp.ClientConnectorError as e:
            raise ConnectionError(
                f"Cannot connect to Ollama at {self.host}. Make sure Ollama is running: ollama serve"
            ) from e

        text = data.get('message', {}).get('content', '')
        prompt_tokens = data.get('prompt_eval_count', 0)
        generated_tokens = data.get('eval_count', 0)
        latency = time.perf_counter() - start_time

        self.logger.info(f"Generated {generated_tokens} tokens in {latency:.2f}s")

        return CompletionResponse(
            text=text.strip(),
            prompt_tokens=prompt_tokens,
            completion_tokens=generated_tokens,
            model=self._model_name,
            provider=self.provider,
            latency=latency,
        )
