# ============================================================================
# src/receipt_ingestion/config/llm_config.py
# ============================================================================
"""
Completion Backend Configuration
- OpenAI (hosted)
- Azure OpenAI
- Ollama (local)
- Generation settings for receipt parsing
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMSettings(BaseSettings):
    OPENAI_API_KEY: str = Field(
        default="",
        description="API key for the hosted OpenAI backend"
    )
    OPENAI_BASE_URL: str = Field(
        default="",
        description="Alternative base URL for OpenAI-compatible servers (empty = api.openai.com)"
    )
    AI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Model used for structured receipt parsing"
    )
    AI_MAX_TOKENS: int = Field(
        default=400,
        gt=0,
        description="Maximum tokens generated for one receipt"
    )
    AI_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0, le=2.0,
        description="Sampling temperature (0.1 = nearly deterministic)"
    )

    AZURE_OPENAI_ENDPOINT: str = Field(
        default="",
        description="Azure OpenAI resource endpoint"
    )
    AZURE_OPENAI_API_KEY: str = Field(
        default="",
        description="Azure OpenAI API key"
    )
    AZURE_OPENAI_CHAT_MODEL_DEPLOYMENT: str = Field(
        default="gpt-4o-mini",
        description="Azure deployment name for the chat model"
    )
    AZURE_OPENAI_API_VERSION: str = Field(
        default="2024-02-01",
        description="Azure OpenAI API version"
    )

    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    OLLAMA_MODEL: str = Field(
        default="llama3.2:3b",
        description="Ollama model used for receipt parsing"
    )
