"""LLM integration: backends, classification fallback and command translation."""

from catalog_sync.services.llm.client import (
    LLMClient,
    LLMResponse,
    MockLLMClient,
    OllamaClient,
    OpenAIClient,
    create_llm_client,
    extract_json_object,
)
from catalog_sync.services.llm.command_translator import CommandTranslator
from catalog_sync.services.llm.fallback_classifier import FallbackClassifier

__all__ = [
    "CommandTranslator",
    "FallbackClassifier",
    "LLMClient",
    "LLMResponse",
    "MockLLMClient",
    "OllamaClient",
    "OpenAIClient",
    "create_llm_client",
    "extract_json_object",
]
