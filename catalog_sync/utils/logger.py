"""
Structured Logging Configuration
================================

JSON-formatted logging using structlog for observability.

Every event carries the shop domain, and credential-bearing keys
(access tokens, shared secrets, webhook signatures) are masked before
rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from catalog_sync.config.settings import Settings, get_settings, get_shopify_settings

REDACTED = "***"

SECRET_KEYS = frozenset(
    {
        "access_token",
        "api_key",
        "openai_api_key",
        "token",
        "backfill_token",
        "command_token",
        "app_webhook_secret",
        "hmac",
        "signature",
    }
)


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values logged under credential keys; empty values are left as-is."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def add_shop(shop: str) -> Processor:
    """Processor stamping ``shop`` on events that don't already name one."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        if shop:
            event_dict.setdefault("shop", shop)
        return event_dict

    return processor


def configure_logging(settings: Settings | None = None, shop: str | None = None) -> None:
    """
    Configure structured logging for the process.

    Sets up JSON logging for production and human-readable
    colored output everywhere else.

    Args:
        settings: Application settings (defaults to environment)
        shop: Shop domain stamped on every event (defaults to SHOPIFY_SHOP)
    """
    settings = settings or get_settings()
    if shop is None:
        shop = get_shopify_settings().shop

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_shop(shop),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_production:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, typically for ``__name__``."""
    return structlog.get_logger(name)
