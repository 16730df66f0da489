# ============================================================================
# FILE: tests/unit/test_ai_extractor.py
# ============================================================================
"""
Unit tests for structured AI extraction
"""

import json
import math
from datetime import date

import pytest

from src.receipt_ingestion.core.merge import merge
from src.receipt_ingestion.extractors.ai_extractor import StructuredAIExtractor
from src.receipt_ingestion.llm.prompts import RECEIPT_SYSTEM_PROMPT
from src.receipt_ingestion.models.receipt import PrimaryResult
from src.receipt_ingestion.utils.exceptions import (
    AIExtractionError,
    AITimeoutError,
    SchemaValidationError,
)

TODAY = date(2024, 3, 20)

CONFIG = {"ai_timeout": 0.2, "ai_max_tokens": 400, "ai_temperature": 0.1, "ai_max_retries": 2}


def make_extractor(client, fallbacks=(), **overrides):
    config = dict(CONFIG)
    config.update(overrides)
    return StructuredAIExtractor(config, client=client, fallback_clients=list(fallbacks))


class TestSuccessfulExtraction:

    @pytest.mark.asyncio
    async def test_parses_and_normalizes(self, fake_client, trader_joes_response):
        extractor = make_extractor(fake_client(text=trader_joes_response))

        receipt = await extractor.extract_structured("TRADER J0E'S TOTAL 47.82", today=TODAY)

        assert receipt.vendor == "Trader Joe's"
        assert receipt.date == "2024-03-14"
        assert receipt.total == 47.82
        assert receipt.currency == "USD"
        assert len(receipt.items) == 6
        assert receipt.confidence == 90.0

    @pytest.mark.asyncio
    async def test_item_unit_price_from_quantity(self, fake_client, trader_joes_response):
        extractor = make_extractor(fake_client(text=trader_joes_response))

        receipt = await extractor.extract_structured("text", today=TODAY)
        coffee = receipt.items[2]

        assert coffee.desc == "Cold Brew Coffee"
        assert coffee.quantity == 2
        assert coffee.unit_price == 4.49

    @pytest.mark.asyncio
    async def test_cost_from_token_usage(self, fake_client, trader_joes_response):
        extractor = make_extractor(fake_client(text=trader_joes_response))

        receipt = await extractor.extract_structured("text", today=TODAY)

        # 500 prompt tokens at $0.15/M + 150 completion tokens at $0.60/M
        assert receipt.usage.cost == pytest.approx(0.000165)
        assert receipt.usage.prompt_tokens == 500

    @pytest.mark.asyncio
    async def test_sends_prompt_with_text_and_hint(self, fake_client, trader_joes_response):
        client = fake_client(text=trader_joes_response)
        extractor = make_extractor(client)

        await extractor.extract_structured("TRADER J0E'S TOTAL 47.82", hint={"total": 47.82}, today=TODAY)

        call = client.calls[0]
        assert call["system"] == RECEIPT_SYSTEM_PROMPT
        assert "TRADER J0E'S TOTAL 47.82" in call["prompt"]
        assert '"total": 47.82' in call["prompt"]
        assert call["json_mode"] is True
        assert call["max_tokens"] == 400

    @pytest.mark.asyncio
    async def test_json_inside_markdown_fence(self, fake_client):
        reply = '```json\n{"vendor": "Costco", "date": "2024-03-01", "total": "$1,204.10", "items": []}\n```'
        extractor = make_extractor(fake_client(text=reply))

        receipt = await extractor.extract_structured("text", today=TODAY)

        assert receipt.vendor == "Costco"
        assert receipt.total == 1204.10
        assert receipt.items == ()

    @pytest.mark.asyncio
    async def test_item_field_aliases(self, fake_client):
        reply = json.dumps({
            "vendor": "Staples",
            "date": "2024-03-01",
            "total": 15.0,
            "currency": None,
            "items": [{"description": "Pens", "total_price": 15.0, "quantity": 0}, "junk"],
        })
        extractor = make_extractor(fake_client(text=reply))

        receipt = await extractor.extract_structured("text", today=TODAY)

        assert receipt.currency == "USD"
        assert len(receipt.items) == 1
        assert receipt.items[0].desc == "Pens"
        assert receipt.items[0].price == 15.0
        assert receipt.items[0].quantity == 1.0


class TestFailures:
    """Every failure surfaces as AIExtractionError"""

    @pytest.mark.asyncio
    async def test_timeout(self, fake_client, trader_joes_response):
        extractor = make_extractor(fake_client(text=trader_joes_response, delay=1.0), ai_timeout=0.05)

        with pytest.raises(AITimeoutError) as exc_info:
            await extractor.extract_structured("text", today=TODAY)

        assert exc_info.value.code == "AI_TIMEOUT"
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_network_error(self, fake_client):
        extractor = make_extractor(fake_client(error=ConnectionError("connection refused")))

        with pytest.raises(AIExtractionError) as exc_info:
            await extractor.extract_structured("text", today=TODAY)

        assert not isinstance(exc_info.value, AITimeoutError)
        assert "ConnectionError" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_reply(self, fake_client):
        extractor = make_extractor(fake_client(text=""))

        with pytest.raises(AIExtractionError, match="No response"):
            await extractor.extract_structured("text", today=TODAY)

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, fake_client):
        extractor = make_extractor(fake_client(text="Sorry, I cannot read this receipt."))

        with pytest.raises(AIExtractionError):
            await extractor.extract_structured("text", today=TODAY)

    @pytest.mark.asyncio
    async def test_schema_violations(self, fake_client):
        reply = json.dumps({"vendor": "", "date": "yesterday", "total": 0, "items": "none"})
        extractor = make_extractor(fake_client(text=reply))

        with pytest.raises(SchemaValidationError) as exc_info:
            await extractor.extract_structured("text", today=TODAY)

        assert len(exc_info.value.violations) == 4
        assert exc_info.value.code == "AI_SCHEMA_INVALID"

    @pytest.mark.asyncio
    async def test_non_object_reply(self, fake_client):
        extractor = make_extractor(fake_client(text="[1, 2, 3]"))

        with pytest.raises(SchemaValidationError):
            await extractor.extract_structured("text", today=TODAY)


class TestOutcome:

    @pytest.mark.asyncio
    async def test_success_outcome(self, fake_client, trader_joes_response):
        extractor = make_extractor(fake_client(text=trader_joes_response))

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert outcome.ok
        assert outcome.error is None
        assert outcome.receipt.vendor == "Trader Joe's"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"error": ConnectionError("refused")},
        {"error": RuntimeError("HTTP 500")},
        {"text": "not json at all"},
        {"text": '{"vendor": "X"}'},
        {"text": "{}", "delay": 1.0},
    ])
    async def test_failures_never_raise(self, fake_client, kwargs):
        extractor = make_extractor(fake_client(**kwargs), ai_timeout=0.05)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert not outcome.ok
        assert outcome.receipt is None
        assert isinstance(outcome.error, AIExtractionError)


class TestAvailability:

    def test_available_when_enabled_and_configured(self, fake_client):
        assert make_extractor(fake_client()).is_available()

    def test_disabled(self, fake_client):
        assert not make_extractor(fake_client(), enable_ai=False).is_available()

    def test_client_not_configured(self, fake_client):
        assert not make_extractor(fake_client(configured=False)).is_available()


def test_validate_accepts_minimal_receipt():
    data = {"vendor": "Target", "date": "2024-03-14", "total": 9.99, "items": []}
    assert StructuredAIExtractor.validate(data) == []


def test_validate_rejects_bad_date_format():
    data = {"vendor": "Target", "date": "03/14/2024", "total": 9.99, "items": []}
    assert StructuredAIExtractor.validate(data) == ["date must match YYYY-MM-DD"]


class TestRetriesAndFallback:

    @pytest.mark.asyncio
    async def test_failed_request_is_retried(self, fake_client):
        client = fake_client(error=ConnectionError("refused"))
        extractor = make_extractor(client, ai_max_retries=2)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert not outcome.ok
        assert len(client.calls) == 3

    @pytest.mark.asyncio
    async def test_no_retries(self, fake_client):
        client = fake_client(text="not json at all")
        extractor = make_extractor(client, ai_max_retries=0)

        await extractor.try_extract_structured("text", today=TODAY)

        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self, fake_client):
        client = fake_client(text="{}", delay=1.0)
        extractor = make_extractor(client, ai_timeout=0.05, ai_max_retries=2)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert isinstance(outcome.error, AITimeoutError)
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_fallback_used_when_primary_fails(self, fake_client, trader_joes_response):
        primary = fake_client(error=RuntimeError("HTTP 503"))
        fallback = fake_client(text=trader_joes_response, model="llama3.2:3b")
        extractor = make_extractor(primary, fallbacks=[fallback], ai_max_retries=1)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert outcome.ok
        assert outcome.receipt.vendor == "Trader Joe's"
        assert len(primary.calls) == 2
        assert len(fallback.calls) == 1

    @pytest.mark.asyncio
    async def test_fallback_after_primary_timeout(self, fake_client, trader_joes_response):
        primary = fake_client(text=trader_joes_response, delay=1.0)
        fallback = fake_client(text=trader_joes_response)
        extractor = make_extractor(primary, fallbacks=[fallback], ai_timeout=0.05)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert outcome.ok
        assert len(primary.calls) == 1

    @pytest.mark.asyncio
    async def test_last_error_reported_when_all_fail(self, fake_client):
        primary = fake_client(error=ConnectionError("refused"))
        fallback = fake_client(text='{"vendor": "X"}')
        extractor = make_extractor(primary, fallbacks=[fallback], ai_max_retries=0)

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert isinstance(outcome.error, SchemaValidationError)

    @pytest.mark.asyncio
    async def test_unconfigured_primary_is_skipped(self, fake_client, trader_joes_response):
        primary = fake_client(configured=False)
        fallback = fake_client(text=trader_joes_response)
        extractor = make_extractor(primary, fallbacks=[fallback])

        outcome = await extractor.try_extract_structured("text", today=TODAY)

        assert extractor.is_available()
        assert outcome.ok
        assert primary.calls == []

    def test_fallbacks_built_from_config(self, fake_client):
        extractor = StructuredAIExtractor(
            {"primary_provider": "openai", "fallback_providers": ["openai", "ollama"]},
            client=fake_client(),
        )

        assert [c.provider for c in extractor.clients] == ["openai", "ollama"]

    @pytest.mark.asyncio
    async def test_close_closes_every_backend(self, fake_client):
        primary, fallback = fake_client(), fake_client()
        extractor = make_extractor(primary, fallbacks=[fallback])

        await extractor.close()

        assert primary.closed and fallback.closed


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_amount", ["abc", None, -3, "-3", "NaN"])
async def test_unreadable_amounts_become_zero(fake_client, bad_amount):
    reply = json.dumps({
        "vendor": "Trader Joe's",
        "date": "2024-03-14",
        "total": 47.82,
        "subtotal": bad_amount,
        "tax": bad_amount,
        "items": [{"desc": "Greek Yogurt", "price": bad_amount, "quantity": 1}],
    })
    extractor = make_extractor(fake_client(text=reply))
    primary = PrimaryResult(raw_text="TRADER J0E'S\nTOTAL 47.82", confidence=45.0, vendor="TRADER J0E'S")

    receipt = merge(primary, await extractor.extract_structured("text", today=TODAY), today=TODAY)

    for value in (receipt.subtotal, receipt.tax, receipt.line_items[0].total_price):
        assert value == 0.0
        assert not math.isnan(value)
