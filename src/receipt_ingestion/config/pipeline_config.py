# ============================================================================
# src/receipt_ingestion/config/pipeline_config.py
# ============================================================================
"""
Pipeline Settings
- Primary AI provider
- Fallback AI providers and retries
- Escalation and review thresholds
- Cost warning threshold
- AI stage timeout
- Result caching
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class PipelineSettings(BaseSettings):
    PRIMARY_PROVIDER: str = Field(
        default="openai",
        description="Completion backend for the structured AI stage (openai, azure, ollama)"
    )
    FALLBACK_PROVIDERS: str = Field(
        default="",
        description="Comma-separated backends tried in order when the primary fails (e.g. \"ollama\")"
    )
    MAX_RETRIES: int = Field(
        default=2,
        ge=0, le=5,
        description="Extra attempts per backend after a failed request (timeouts are not retried)"
    )
    ENABLE_AI: bool = Field(
        default=True,
        description="Allow escalation to the structured AI extractor"
    )
    ACCURACY_THRESHOLD: float = Field(
        default=80.0,
        ge=0.0, le=100.0,
        description="Escalate to AI extraction when primary OCR confidence is strictly below this"
    )
    REVIEW_THRESHOLD: float = Field(
        default=70.0,
        ge=0.0, le=100.0,
        description="Final confidence below this flags the receipt for human review"
    )
    COST_THRESHOLD: float = Field(
        default=0.01,
        ge=0.0,
        description="Log a cost warning when a single request costs more than this (USD)"
    )
    TIMEOUT_MS: int = Field(
        default=120000,
        gt=0,
        description="Timeout for the structured AI call (milliseconds)"
    )
    ENABLE_CACHING: bool = Field(
        default=False,
        description="Cache pipeline results keyed by document hash"
    )
    CACHE_MAX_SIZE: int = Field(
        default=100,
        ge=1,
        description="Maximum number of cached pipeline results (LRU eviction)"
    )
