# ============================================================================
# src/receipt_ingestion/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings

Settings are read from the environment when instantiated; see
core.config.PipelineConfig.from_env().
"""

from .pipeline_config import PipelineSettings
from .llm_config import LLMSettings
from .ocr_config import OCRSettings
from .logging_config import LoggingSettings
