# ============================================================================
# src/receipt_ingestion/core/__init__.py
# ============================================================================
"""
Core components for the receipt ingestion pipeline.
"""

from .config import PipelineConfig, get_config, reload_config
from .confidence import (
    ConfidenceThresholds,
    clamp_confidence,
    combine_confidence,
    data_completeness,
    needs_review,
    should_escalate,
)
from .merge import merge, reconcile
from .cache import ResultCache
from .orchestrator import ReceiptPipeline
