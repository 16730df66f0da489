# ============================================================================
# src/receipt_ingestion/extractors/ai_extractor.py
# ============================================================================
"""
Structured AI Extraction

Sends normalized OCR text to a completion backend and turns the reply into
a validated, normalized ParsedReceipt.

Validation is all-or-nothing: a reply with any schema violation is
discarded entirely. Every failure (transport, timeout, unparseable reply,
schema) surfaces as AIExtractionError; try_extract_structured() returns it
as an explicit outcome instead of raising.

The primary backend is tried first, then each fallback backend in order.
A failed attempt is retried up to ai_max_retries times on the same backend;
a timeout moves straight on to the next one. The error of the last attempt
is the one reported.

Usage:
    extractor = StructuredAIExtractor(config)
    outcome = await extractor.try_extract_structured(cleaned_text, hint)
    if outcome.ok:
        receipt = outcome.receipt
"""

import asyncio
import json
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from json_repair import repair_json

from ..llm.base import BaseCompletionClient, CompletionResponse, estimate_cost
from ..llm.client import create_client
from ..llm.prompts import RECEIPT_SYSTEM_PROMPT, build_receipt_prompt
from ..models.receipt import (
    AI_CONFIDENCE,
    DEFAULT_CURRENCY,
    AIExtractionOutcome,
    CompletionUsage,
    ParsedItem,
    ParsedReceipt,
)
from ..utils.exceptions import AIExtractionError, AITimeoutError, SchemaValidationError
from ..utils.parsing import ISO_DATE_PATTERN, normalize_amount, normalize_date, parse_amount


class StructuredAIExtractor:
    """
    AI-backed structured receipt extractor.

    Config options:
        ai_max_tokens: Max tokens per reply (default: 400)
        ai_temperature: Sampling temperature (default: 0.1)
        ai_timeout: Seconds before one call is abandoned (default: 120)
        ai_max_retries: Extra attempts per backend after a failure (default: 2)
        fallback_providers: Backends tried after the primary (default: none)
        enable_ai: When False the extractor reports itself unavailable
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client: Optional[BaseCompletionClient] = None,
        fallback_clients: Optional[List[BaseCompletionClient]] = None,
    ):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)
        self.client = client or create_client(self.config)
        if fallback_clients is None:
            fallback_clients = self._create_fallbacks()
        self.clients = [self.client] + list(fallback_clients)

        self.max_tokens = self.config.get('ai_max_tokens', 400)
        self.temperature = self.config.get('ai_temperature', 0.1)
        self.timeout = self.config.get('ai_timeout', self.config.get('timeout_ms', 120000) / 1000.0)
        self.max_retries = max(0, int(self.config.get('ai_max_retries', 2)))
        self.enabled = self.config.get('enable_ai', True)

    @property
    def provider(self) -> str:
        return self.client.provider

    def is_available(self) -> bool:
        """Whether escalation to this extractor can happen at all."""
        return bool(self.enabled) and any(c.is_configured() for c in self.clients)

    def _create_fallbacks(self) -> List[BaseCompletionClient]:
        primary = str(self.config.get('primary_provider', self.client.provider)).strip().lower()
        names = self.config.get('fallback_providers') or []
        if isinstance(names, str):
            names = names.split(',')
        fallbacks = []
        for name in names:
            name = str(name).strip().lower()
            if name and name != primary:
                fallbacks.append(create_client(dict(self.config, primary_provider=name)))
        return fallbacks

    async def try_extract_structured(
        self,
        cleaned_text: str,
        hint: Optional[Dict[str, Any]] = None,
        today: Optional[date] = None,
    ) -> AIExtractionOutcome:
        """Like extract_structured, but failures come back as an outcome."""
        try:
            receipt = await self.extract_structured(cleaned_text, hint, today=today)
        except AIExtractionError as e:
            return AIExtractionOutcome.failure(e)
        return AIExtractionOutcome.success(receipt)

    async def extract_structured(
        self,
        cleaned_text: str,
        hint: Optional[Dict[str, Any]] = None,
        today: Optional[date] = None,
    ) -> ParsedReceipt:
        """
        Extract a structured receipt from normalized text.

        Tries every configured backend in order, retrying failed attempts.

        Raises:
            AITimeoutError: the last attempt exceeded the timeout
            SchemaValidationError: the last reply does not match the receipt schema
            AIExtractionError: any other failure (network, empty reply, bad JSON)
        """
        prompt = build_receipt_prompt(cleaned_text, hint)
        clients = [c for c in self.clients if c.is_configured()] or [self.client]

        last_error: Optional[AIExtractionError] = None
        for client in clients:
            for attempt in range(1 + self.max_retries):
                try:
                    return await self._extract_once(client, prompt, today)
                except AITimeoutError as e:
                    last_error = e
                    self.logger.warning(f"{client.provider} timed out, not retrying")
                    break
                except AIExtractionError as e:
                    last_error = e
                    self.logger.warning(
                        f"{client.provider} attempt {attempt + 1}/{1 + self.max_retries} failed: {e}"
                    )

        raise last_error

    async def _extract_once(
        self,
        client: BaseCompletionClient,
        prompt: str,
        today: Optional[date],
    ) -> ParsedReceipt:
        provider = client.provider
        try:
            response = await asyncio.wait_for(
                client.complete(
                    system=RECEIPT_SYSTEM_PROMPT,
                    prompt=prompt,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    json_mode=True,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AITimeoutError(
                f"AI extraction timed out after {self.timeout}s", provider=provider
            ) from e
        except AIExtractionError:
            raise
        except Exception as e:
            raise AIExtractionError(
                f"AI request failed: {type(e).__name__}: {e}", provider=provider
            ) from e

        if not response.text:
            raise AIExtractionError("No response from AI provider", provider=provider)

        data = self._parse_json(response.text, provider)
        violations = self.validate(data)
        if violations:
            raise SchemaValidationError(violations, provider=provider)

        receipt = self._normalize(data, self._usage(response, provider), today)
        self.logger.info(
            f"AI extraction succeeded ({provider}): {len(receipt.items)} items, "
            f"cost=${receipt.usage.cost:.6f}"
        )
        return receipt

    def _parse_json(self, response: str, provider: Optional[str] = None) -> Any:
        """
        Parse JSON from the model reply.

        Tries a direct parse, then the outermost {...} block, then json_repair.
        """
        response = response.strip()

        try:
            return json.loads(response)
        except json.JSONDecodeError:
            pass

        json_match = re.search(r'(\{[\s\S]*\})', response)
        if json_match:
            try:
                return json.loads(json_match.group(1))
            except json.JSONDecodeError:
                pass

        try:
            repaired = repair_json(response, return_objects=True)
        except Exception as e:
            self.logger.debug(f"json_repair failed: {e}")
            repaired = None

        if isinstance(repaired, dict) and repaired:
            self.logger.debug("json_repair fixed AI response")
            return repaired

        raise AIExtractionError(
            f"Could not parse JSON from AI response ({len(response)} chars)",
            provider=provider or self.provider,
        )

    @staticmethod
    def validate(data: Any) -> List[str]:
        """Schema violations in a parsed reply; empty when the reply is usable."""
        if not isinstance(data, dict):
            return [f"response is {type(data).__name__}, expected object"]

        violations = []

        vendor = data.get('vendor')
        if not isinstance(vendor, str) or not vendor.strip():
            violations.append("vendor must be a non-empty string")

        receipt_date = data.get('date')
        if not isinstance(receipt_date, str) or not ISO_DATE_PATTERN.match(receipt_date.strip()):
            violations.append("date must match YYYY-MM-DD")

        total = parse_amount(data.get('total'))
        if total is None or total <= 0:
            violations.append("total must be a positive number")

        if not isinstance(data.get('items'), list):
            violations.append("items must be an array")

        return violations

    def _usage(self, response: CompletionResponse, provider: str) -> CompletionUsage:
        return CompletionUsage(
            provider=response.provider or provider,
            model=response.model,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens,
            cost=estimate_cost(response.model, response.prompt_tokens, response.completion_tokens),
        )

    @staticmethod
    def _normalize(data: Dict[str, Any], usage: CompletionUsage, today: Optional[date]) -> ParsedReceipt:
        items = []
        for raw in data.get('items') or []:
            if not isinstance(raw, dict):
                continue
            desc = raw.get('desc') or raw.get('description') or raw.get('name') or ''
            price = normalize_amount(raw.get('price', raw.get('total_price')))
            quantity = normalize_amount(raw.get('quantity'))
            if quantity < 1:
                quantity = 1.0
            unit_price = raw.get('unit_price')
            items.append(ParsedItem(
                desc=str(desc).strip(),
                price=price,
                quantity=quantity,
                unit_price=normalize_amount(unit_price) if unit_price is not None else round(price / quantity, 2),
            ))

        currency = data.get('currency')
        if not isinstance(currency, str) or not currency.strip():
            currency = DEFAULT_CURRENCY

        return ParsedReceipt(
            vendor=data['vendor'].strip(),
            date=normalize_date(data['date'], today),
            total=normalize_amount(data['total']),
            subtotal=normalize_amount(data.get('subtotal')),
            tax=normalize_amount(data.get('tax')),
            currency=currency.strip().upper(),
            items=tuple(items),
            confidence=AI_CONFIDENCE,
            usage=usage,
        )

    async def close(self):
        """Release network resources held by every backend."""
        for client in self.clients:
            await client.close()
