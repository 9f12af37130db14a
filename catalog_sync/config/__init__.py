"""Configuration module."""
from catalog_sync.config.settings import (
    LLMBackendType,
    LLMSettings,
    Settings,
    ShopifySettings,
    get_llm_settings,
    get_settings,
    get_shopify_settings,
)

__all__ = [
    "LLMBackendType",
    "LLMSettings",
    "Settings",
    "ShopifySettings",
    "get_llm_settings",
    "get_settings",
    "get_shopify_settings",
]
