# ============================================================================
# src/receipt_ingestion/core/config.py
# ============================================================================
"""
Centralized Configuration Management

Loads configuration from environment variables (.env file) with defaults
through the pydantic settings modules in receipt_ingestion.config.
Components receive the plain dict from get_config() (or a subset of it).

Usage:
    from receipt_ingestion.core.config import get_config, PipelineConfig

    config = get_config()
    pipeline = ReceiptPipeline(config)

    cfg = PipelineConfig.from_env()
    print(cfg.accuracy_threshold)
"""

from dataclasses import dataclass, asdict, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from ..config import LLMSettings, LoggingSettings, OCRSettings, PipelineSettings


def _load_dotenv() -> bool:
    """Load .env from the project root or the working directory, if present."""
    env_path = Path(__file__).parent.parent.parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
        return True

    cwd_env = Path.cwd() / '.env'
    if cwd_env.exists():
        load_dotenv(cwd_env)
        return True

    return False


def _provider_list(value: str) -> List[str]:
    """Split a comma-separated provider list, lowercased, blanks dropped."""
    return [name.strip().lower() for name in value.split(',') if name.strip()]


@dataclass
class PipelineConfig:
    """
    Configuration container with attribute access.

    Defaults mirror the settings modules; from_env() reads the environment.
    """

    # Pipeline
    primary_provider: str = 'openai'
    fallback_providers: List[str] = field(default_factory=list)
    ai_max_retries: int = 2
    enable_ai: bool = True
    accuracy_threshold: float = 80.0
    review_threshold: float = 70.0
    cost_threshold: float = 0.01
    timeout_ms: int = 120000
    enable_caching: bool = False
    cache_max_size: int = 100

    # Completion backends
    openai_api_key: str = ''
    openai_base_url: str = ''
    ai_model: str = 'gpt-4o-mini'
    ai_max_tokens: int = 400
    ai_temperature: float = 0.1
    azure_endpoint: str = ''
    azure_api_key: str = ''
    azure_deployment: str = 'gpt-4o-mini'
    azure_api_version: str = '2024-02-01'
    ollama_host: str = 'http://localhost:11434'
    ollama_model: str = 'llama3.2:3b'

    # OCR
    ocr_language: str = 'eng'
    ocr_dpi: int = 200
    ocr_timeout: float = 60.0
    ocr_enhance_below: float = 40.0
    ocr_max_dimension: int = 2500

    # Logging
    log_level: str = 'INFO'
    log_json: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        """Build a config from environment variables (and .env)."""
        _load_dotenv()

        pipeline = PipelineSettings()
        llm = LLMSettings()
        ocr = OCRSettings()
        logs = LoggingSettings()

        return cls(
            primary_provider=pipeline.PRIMARY_PROVIDER.strip().lower(),
            fallback_providers=_provider_list(pipeline.FALLBACK_PROVIDERS),
            ai_max_retries=pipeline.MAX_RETRIES,
            enable_ai=pipeline.ENABLE_AI,
            accuracy_threshold=pipeline.ACCURACY_THRESHOLD,
            review_threshold=pipeline.REVIEW_THRESHOLD,
            cost_threshold=pipeline.COST_THRESHOLD,
            timeout_ms=pipeline.TIMEOUT_MS,
            enable_caching=pipeline.ENABLE_CACHING,
            cache_max_size=pipeline.CACHE_MAX_SIZE,
            openai_api_key=llm.OPENAI_API_KEY,
            openai_base_url=llm.OPENAI_BASE_URL,
            ai_model=llm.AI_MODEL,
            ai_max_tokens=llm.AI_MAX_TOKENS,
            ai_temperature=llm.AI_TEMPERATURE,
            azure_endpoint=llm.AZURE_OPENAI_ENDPOINT,
            azure_api_key=llm.AZURE_OPENAI_API_KEY,
            azure_deployment=llm.AZURE_OPENAI_CHAT_MODEL_DEPLOYMENT,
            azure_api_version=llm.AZURE_OPENAI_API_VERSION,
            ollama_host=llm.OLLAMA_HOST,
            ollama_model=llm.OLLAMA_MODEL,
            ocr_language=ocr.OCR_LANGUAGE,
            ocr_dpi=ocr.OCR_DPI,
            ocr_timeout=ocr.OCR_TIMEOUT,
            ocr_enhance_below=ocr.OCR_ENHANCE_BELOW,
            ocr_max_dimension=ocr.OCR_MAX_DIMENSION,
            log_level=logs.LOG_LEVEL,
            log_json=logs.LOG_JSON,
            log_file=logs.LOG_FILE,
        )

    @property
    def ai_timeout(self) -> float:
        """AI stage timeout in seconds."""
        return self.timeout_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for passing to components."""
        data = asdict(self)
        data['ai_timeout'] = self.ai_timeout
        return data


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Get configuration dictionary.

    Cached - call once and pass to components.
    """
    return PipelineConfig.from_env().to_dict()


def reload_config() -> Dict[str, Any]:
    """Reload configuration from environment."""
    get_config.cache_clear()
    return get_config()
