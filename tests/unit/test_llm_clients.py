# ============================================================================
# FILE: tests/unit/test_llm_clients.py
# ============================================================================
"""
Unit tests for completion clients, the client factory and cost estimation
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.receipt_ingestion.llm import (
    BackendType,
    OllamaCompletionClient,
    OpenAICompletionClient,
    build_receipt_prompt,
    create_client,
    estimate_cost,
)
from src.receipt_ingestion.extractors.ai_extractor import StructuredAIExtractor
from src.receipt_ingestion.utils.exceptions import AITimeoutError, ConfigurationError


class TestFactory:

    def test_openai_is_default(self):
        client = create_client({"openai_api_key": "sk-test"})

        assert isinstance(client, OpenAICompletionClient)
        assert client.backend_type == BackendType.OPENAI
        assert client.model_name == "gpt-4o-mini"

    def test_azure(self):
        client = create_client({
            "primary_provider": "azure",
            "azure_endpoint": "https://example.openai.azure.com",
            "azure_api_key": "key",
            "azure_deployment": "receipts-4o-mini",
        })

        assert client.provider == "azure"
        assert client.model_name == "receipts-4o-mini"
        assert client.is_configured()

    def test_ollama(self):
        client = create_client({"primary_provider": "ollama", "ollama_host": "http://gpu-box:11434/"})

        assert isinstance(client, OllamaCompletionClient)
        assert client.host == "http://gpu-box:11434"
        assert client.provider == "ollama"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_client({"primary_provider": "bard"})

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert "bard" in str(exc_info.value)


class TestOpenAIClient:

    def test_not_configured_without_key(self):
        client = OpenAICompletionClient({})

        assert not client.is_configured()
        with pytest.raises(ConfigurationError):
            client.client

    def test_azure_needs_endpoint_and_key(self):
        assert not OpenAICompletionClient({"azure_api_key": "key"}, use_azure=True).is_configured()

    @pytest.mark.asyncio
    async def test_complete_reads_text_and_usage(self):
        client = OpenAICompletionClient({"openai_api_key": "sk-test"})
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=MagicMock(
            choices=[MagicMock(message=MagicMock(content='  {"vendor": "Target"}  '))],
            usage=MagicMock(prompt_tokens=321, completion_tokens=45),
        ))
        client._client = sdk

        response = await client.complete("system", "prompt", max_tokens=200)

        assert response.text == '{"vendor": "Target"}'
        assert response.prompt_tokens == 321
        assert response.completion_tokens == 45
        assert response.provider == "openai"

        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["max_tokens"] == 200
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    def test_sdk_client_has_bounded_timeout_and_no_retries(self):
        client = OpenAICompletionClient({"openai_api_key": "sk-test", "ai_timeout": 7.5})

        assert client.client.timeout == 7.5
        assert client.client.max_retries == 0

    @pytest.mark.asyncio
    async def test_timeout_aborts_hung_request(self):
        """A timed-out call closes its connection instead of leaving it running"""
        connected = asyncio.Event()
        disconnected = asyncio.Event()

        async def never_answer(reader, writer):
            connected.set()
            await reader.read()
            disconnected.set()
            writer.close()

        server = await asyncio.start_server(never_answer, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        client = OpenAICompletionClient({
            "openai_api_key": "sk-test",
            "openai_base_url": f"http://127.0.0.1:{port}/v1",
            "ai_timeout": 30,
        })
        extractor = StructuredAIExtractor({"ai_timeout": 0.3, "ai_max_retries": 0}, client=client)

        try:
            with pytest.raises(AITimeoutError):
                await extractor.extract_structured("TRADER JOE'S TOTAL 47.82")
            await asyncio.wait_for(disconnected.wait(), timeout=2)
        finally:
            await client.close()
            server.close()
            await server.wait_closed()

        assert connected.is_set()

    @pytest.mark.asyncio
    async def test_health_check_without_credentials(self):
        health = await OpenAICompletionClient({}).health_check()

        assert health["healthy"] is False
        assert health["backend"] == "openai"


class TestCostEstimate:

    def test_known_model(self):
        assert estimate_cost("gpt-4o-mini", 1_000_000, 0) == pytest.approx(0.15)
        assert estimate_cost("gpt-4o", 0, 1_000_000) == pytest.approx(10.00)

    def test_dated_snapshot_uses_base_price(self):
        assert estimate_cost("gpt-4o-mini-2024-07-18", 1000, 1000) == estimate_cost("gpt-4o-mini", 1000, 1000)

    def test_unknown_model_is_free(self):
        assert estimate_cost("llama3.2:3b", 5000, 5000) == 0.0


def test_prompt_contains_text_and_schema():
    prompt = build_receipt_prompt("WHOLE FOODS TOTAL 22.66", {"vendor": "WHOLE FOODS"})

    assert "WHOLE FOODS TOTAL 22.66" in prompt
    assert '"vendor": "WHOLE FOODS"' in prompt
    assert "YYYY-MM-DD" in prompt


def test_prompt_without_hint():
    assert "none" in build_receipt_prompt("text")
