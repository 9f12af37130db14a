"""
Custom Exception Classes
========================

Application-specific exceptions for the catalog sync engine.
"""

from typing import Any


class CatalogSyncError(Exception):
    """Base exception for catalog sync errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CatalogSyncError):
    """Raised when configuration is invalid or incomplete."""

    pass


class ValidationError(CatalogSyncError):
    """Raised when input is rejected before any remote call is made."""

    pass


class ShopifyAPIError(CatalogSyncError):
    """Raised when the Admin API answers with a non-retryable error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class TransientAPIError(ShopifyAPIError):
    """
    Raised for 429, 5xx and transport failures.

    The throttled client retries these once after ``retry_after`` seconds;
    a second failure propagates to the caller.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code, details)
        self.retry_after = retry_after


class ProductNotFoundError(CatalogSyncError):
    """Raised when a product lookup returns 404."""

    pass


class RuleValidationError(ValidationError):
    """Raised when a classification rule is not a valid keyword or regex rule."""

    pass


class ProcessingError(CatalogSyncError):
    """Raised when classify/merge/write fails for a single product."""

    def __init__(
        self,
        message: str,
        product_id: int | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.product_id = product_id


class LLMError(CatalogSyncError):
    """Raised when model inference fails or returns unusable output."""

    pass


class CommandError(CatalogSyncError):
    """Raised when a command request cannot be executed."""

    pass


class CommandTranslationError(CommandError):
    """Raised when a natural-language prompt cannot be turned into commands."""

    pass


class JobNotFoundError(CatalogSyncError):
    """Raised when a job is not found."""

    pass
