"""
Service Container
=================

Builds every collaborator from settings and holds the references, so
nothing in the engine relies on module-level singletons. The HTTP app
and the CLI each build one container per process.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from catalog_sync.config.settings import (
    LLMSettings,
    Settings,
    ShopifySettings,
    get_llm_settings,
    get_settings,
    get_shopify_settings,
)
from catalog_sync.services.backfill import BackfillService
from catalog_sync.services.categorizer import Categorizer
from catalog_sync.services.classification.classifier import RuleClassifier
from catalog_sync.services.classification.rules import RuleStore
from catalog_sync.services.commands import CommandInterpreter
from catalog_sync.services.dispatch import WorkQueue
from catalog_sync.services.job_queue import JobQueue
from catalog_sync.services.llm.client import LLMClient, create_llm_client
from catalog_sync.services.llm.command_translator import CommandTranslator
from catalog_sync.services.llm.fallback_classifier import FallbackClassifier
from catalog_sync.services.processor import ProductProcessor
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.services.shopify.pager import ResourcePager
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

_FROM_SETTINGS: Any = object()


@dataclass
class ServiceContainer:
    """Wired services for one process."""

    settings: Settings
    shopify_settings: ShopifySettings
    shopify: ShopifyClient
    rule_store: RuleStore
    llm_client: LLMClient | None
    categorizer: Categorizer
    processor: ProductProcessor
    pager: ResourcePager
    backfill: BackfillService
    job_queue: JobQueue
    work_queue: WorkQueue
    commands: CommandInterpreter

    async def aclose(self) -> None:
        """Finish detached work and release network clients."""
        await self.work_queue.drain()
        await self.job_queue.shutdown()
        await self.shopify.close()
        if self.llm_client is not None:
            await self.llm_client.close()
        logger.info("container_closed")


def build_container(
    settings: Settings | None = None,
    shopify_settings: ShopifySettings | None = None,
    llm_settings: LLMSettings | None = None,
    *,
    shopify: ShopifyClient | None = None,
    llm_client: LLMClient | None = _FROM_SETTINGS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ServiceContainer:
    """
    Wire the engine.

    Args:
        settings: Application settings (defaults to environment)
        shopify_settings: Admin API settings (defaults to environment)
        llm_settings: Model settings (defaults to environment)
        shopify: Pre-built client, e.g. a test double
        llm_client: Pre-built model client; None forces rule-only mode
        transport: httpx transport for the Shopify client

    Raises:
        ConfigurationError: Shop domain or access token missing
    """
    settings = settings or get_settings()
    shopify_settings = shopify_settings or get_shopify_settings()
    if shopify is None:
        shopify = ShopifyClient(shopify_settings, transport=transport)
    if llm_client is _FROM_SETTINGS:
        llm_client = create_llm_client(llm_settings or get_llm_settings())

    rule_store = RuleStore(settings.rules_path, default_fallback=settings.fallback_category)
    fallback = (
        FallbackClassifier(llm_client, lang=settings.content_language)
        if llm_client is not None
        else None
    )
    categorizer = Categorizer(
        RuleClassifier(rule_store),
        fallback=fallback,
        threshold=settings.fallback_threshold,
    )
    processor = ProductProcessor(
        shopify,
        categorizer,
        lang=settings.content_language,
        lock_per_product=settings.lock_per_product,
    )
    pager = ResourcePager(shopify)
    backfill = BackfillService(pager, processor)
    job_queue = JobQueue(max_jobs=settings.max_jobs)
    commands = CommandInterpreter(
        shopify=shopify,
        processor=processor,
        categorizer=categorizer,
        rule_store=rule_store,
        job_queue=job_queue,
        backfill=backfill,
        translator=CommandTranslator(llm_client),
    )

    logger.info(
        "container_built",
        rules_path=str(settings.rules_path),
        llm_enabled=llm_client is not None,
        lock_per_product=settings.lock_per_product,
    )
    return ServiceContainer(
        settings=settings,
        shopify_settings=shopify_settings,
        shopify=shopify,
        rule_store=rule_store,
        llm_client=llm_client,
        categorizer=categorizer,
        processor=processor,
        pager=pager,
        backfill=backfill,
        job_queue=job_queue,
        work_queue=WorkQueue(),
        commands=commands,
    )
