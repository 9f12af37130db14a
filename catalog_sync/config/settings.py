"""
Settings Configuration
======================

Environment variable management using pydantic-settings.
Settings are grouped by prefix (SHOPIFY_, LLM_) the same way the
service groups its collaborators.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "data" / "default_rules.json"


class LLMBackendType(str, Enum):
    """Supported LLM backends."""

    OPENAI = "openai"
    OLLAMA = "ollama"
    MOCK = "mock"
    DISABLED = "disabled"


class ShopifySettings(BaseSettings):
    """Shopify Admin API configuration.

    All settings prefixed with SHOPIFY_ (e.g., SHOPIFY_SHOP=acme.myshopify.com)
    """

    shop: str = Field(default="", description="Shop domain, e.g. acme.myshopify.com")
    access_token: str = Field(default="", description="Admin API access token")
    api_version: str = Field(default="2024-07", description="Admin API version")
    app_webhook_secret: str = Field(
        default="", description="Shared secret used to sign webhook bodies"
    )

    # Throttle lane
    min_interval_ms: int = Field(
        default=400,
        ge=0,
        le=10_000,
        description="Minimum spacing between dispatched API calls (milliseconds)",
    )
    default_retry_after: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Back-off used when a 429/5xx response carries no Retry-After",
    )
    timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="Request timeout")

    # Listing / metafields
    page_size: int = Field(default=250, ge=1, le=250, description="Products per page")
    metafield_namespace: str = Field(
        default="auto_ai", description="Namespace for classification metafields"
    )

    model_config = SettingsConfigDict(
        env_prefix="SHOPIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def base_url(self) -> str:
        """Admin REST base URL for the configured shop."""
        return f"https://{self.shop}/admin/api/{self.api_version}"


class LLMSettings(BaseSettings):
    """LLM configuration for the fallback classifier and prompt translation.

    All settings prefixed with LLM_ (e.g., LLM_MODEL=gpt-4o-mini)

    Supported backends:
    - openai: OpenAI-compatible chat completions API (requires API key)
    - ollama: Local Ollama server
    - mock: Scripted client for testing
    - disabled: Rule-only mode
    """

    backend: LLMBackendType = Field(
        default=LLMBackendType.OPENAI,
        description="LLM backend to use (openai, ollama, mock, disabled)",
    )
    model: str = Field(default="gpt-4o-mini", description="Model name")

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="OpenAI-compatible base URL"
    )
    ollama_url: str = Field(default="http://localhost:11434", description="Ollama server URL")

    timeout: float = Field(
        default=180.0, ge=1.0, le=600.0, description="Request timeout in seconds"
    )
    max_retries: int = Field(default=2, ge=1, le=10, description="Maximum attempts")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Model temperature")
    max_tokens: int = Field(default=1024, ge=100, le=8192, description="Max response tokens")

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_enabled(self) -> bool:
        """True when a usable backend is configured."""
        if self.backend == LLMBackendType.DISABLED:
            return False
        if self.backend == LLMBackendType.OPENAI:
            return bool(self.openai_api_key)
        return True


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=10000, description="Server port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="production", description="Deployment environment"
    )

    # -------------------------------------------------------------------------
    # Shared Secrets
    # -------------------------------------------------------------------------
    backfill_token: str = Field(default="", description="Token for POST /backfill")
    command_token: str = Field(default="", description="Token for POST /commands")

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------
    content_language: str = Field(default="en", description="Language for generated copy")
    rules_path: Path = Field(
        default=DEFAULT_RULES_PATH, description="JSON rule file location"
    )
    fallback_category: str = Field(
        default="Miscellaneous", min_length=1, description="Catch-all category label"
    )
    fallback_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Rule confidence below this triggers the model fallback",
    )

    # -------------------------------------------------------------------------
    # Jobs / Processing
    # -------------------------------------------------------------------------
    max_jobs: int = Field(default=100, ge=1, le=10_000, description="Job records kept in memory")
    lock_per_product: bool = Field(
        default=False,
        description="Serialize concurrent processing of the same product id in-process",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


@lru_cache
def get_shopify_settings() -> ShopifySettings:
    """Get cached Shopify settings."""
    return ShopifySettings()


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings."""
    return LLMSettings()
