"""
Product Processor
=================

Idempotent merge/write engine.

For one product revision:
1. Skip when the stored completion stamp equals ``updated_at`` (unless forced)
2. Classify (or take a supplied classification)
3. Merge tags and apply the SEO overwrite policy
4. Write the product, then the auxiliary metafields, then the stamp

A failure anywhere in 1-4 surfaces as ProcessingError and leaves the stamp
untouched, so the next invocation redoes the full merge.
"""

import asyncio
import weakref
from typing import Any

from catalog_sync.schemas.domain import (
    Classification,
    ProcessOptions,
    ProcessResult,
    ProcessStatus,
    Product,
)
from catalog_sync.services.categorizer import Categorizer
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.utils.errors import CatalogSyncError, ProcessingError, ValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

MAX_TAGS = 25
SEO_TITLE_MAX = 70
SEO_DESCRIPTION_MAX = 320
WEAK_SEO_TITLE_LENGTH = 40
WEAK_SEO_DESCRIPTION_LENGTH = 80


def merge_tags(existing: list[str], generated: list[str], replace: bool = False) -> list[str]:
    """
    Case-insensitive union keeping first-seen casing and order.

    Example:
        merge_tags(["Gift", "gift", "Serum"], ["serum", "Brightening"])
        # ["Gift", "Serum", "Brightening"]
    """
    pool = list(generated) if replace else [*existing, *generated]
    seen: set[str] = set()
    merged: list[str] = []
    for tag in pool:
        value = str(tag or "").strip()
        key = value.lower()
        if not value or key in seen:
            continue
        seen.add(key)
        merged.append(value)
    return merged[:MAX_TAGS]


def needs_overwrite(current: str, weak_length: int, replace: bool, proposed: str) -> bool:
    """An SEO field is rewritten when it is empty, weak, or replacement is requested.

    An empty proposal never overwrites anything.
    """
    if not proposed:
        return False
    if replace:
        return True
    return not current or len(current) < weak_length


class ProductProcessor:
    """
    Applies classifications to products through the Shopify client.

    Attributes:
        shopify: Admin API client (all writes go through its throttle lane)
        categorizer: Rule + fallback classification pipeline
        lang: Content language recorded in the ``lang`` metafield
        lock_per_product: Serialize concurrent runs for the same product id
    """

    def __init__(
        self,
        shopify: ShopifyClient,
        categorizer: Categorizer,
        lang: str = "en",
        lock_per_product: bool = False,
    ) -> None:
        self.shopify = shopify
        self.categorizer = categorizer
        self.lang = lang
        self.lock_per_product = lock_per_product
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._log = logger.bind(component="ProductProcessor")

    def _lock_for(self, product_id: int | str) -> asyncio.Lock:
        key = str(product_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def already_processed(self, product: Product) -> bool:
        """True when the completion stamp matches the product's revision."""
        if not product.updated_at:
            return False
        stamp = await self.shopify.get_processed_stamp(product.id)
        return stamp == product.updated_at

    async def process(
        self,
        product: Product,
        source: str = "unknown",
        options: ProcessOptions | None = None,
    ) -> ProcessResult:
        """
        Process one product revision.

        Args:
            product: Product as fetched or delivered by webhook
            source: Trigger label recorded in the ``source`` metafield
            options: Force/dry-run/replace flags and overrides

        Returns:
            ProcessResult with status skipped, processed or dry_run

        Raises:
            ValidationError: Product has no id
            ProcessingError: Any failure while classifying or writing
        """
        if product.id in (None, ""):
            raise ValidationError("Product id is required")
        options = options or ProcessOptions()

        if not self.lock_per_product:
            return await self._process(product, source, options)
        async with self._lock_for(product.id):
            return await self._process(product, source, options)

    async def _process(
        self,
        product: Product,
        source: str,
        options: ProcessOptions,
    ) -> ProcessResult:
        try:
            if not options.force and await self.already_processed(product):
                self._log.debug("product_skipped", product_id=product.id, source=source)
                return ProcessResult(
                    product_id=product.id,
                    status=ProcessStatus.SKIPPED,
                    reason="already_processed",
                )

            classification = options.classification or await self.categorizer.categorize(product)
            tags = merge_tags(product.tag_list, classification.tags, options.replace_tags)
            payload, seo_writes = self._build_payload(product, classification, tags, options)

            if options.dry_run:
                return ProcessResult(
                    product_id=product.id,
                    status=ProcessStatus.DRY_RUN,
                    classification=classification,
                    payload=payload,
                    tags=tags,
                )

            await self.shopify.update_product(product.id, payload)
            await self._write_metafields(product, classification, tags, source, seo_writes)
            if product.updated_at:
                await self.shopify.set_processed_stamp(product.id, product.updated_at)
            else:
                self._log.warning("stamp_skipped_no_revision", product_id=product.id)
        except CatalogSyncError as e:
            self._log.error(
                "product_processing_failed",
                product_id=product.id,
                source=source,
                error=e.message,
                error_type=type(e).__name__,
            )
            raise ProcessingError(
                f"Processing product {product.id} failed: {e.message}",
                product_id=product.id,
                details={"source": source, "error_type": type(e).__name__, **e.details},
            ) from e
        except Exception as e:
            self._log.error(
                "product_processing_failed",
                product_id=product.id,
                source=source,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProcessingError(
                f"Processing product {product.id} failed: {e}",
                product_id=product.id,
                details={"source": source, "error_type": type(e).__name__},
            ) from e

        self._log.info(
            "product_processed",
            product_id=product.id,
            source=source,
            category=classification.category_path,
            method=classification.method.value,
            confidence=classification.confidence,
        )
        return ProcessResult(
            product_id=product.id,
            status=ProcessStatus.PROCESSED,
            classification=classification,
            payload=payload,
            tags=tags,
        )

    def _build_payload(
        self,
        product: Product,
        classification: Classification,
        tags: list[str],
        options: ProcessOptions,
    ) -> tuple[dict[str, Any], dict[str, str]]:
        """Product update body plus the SEO values being overwritten."""
        next_title = classification.seo_title[:SEO_TITLE_MAX]
        next_description = classification.seo_description[:SEO_DESCRIPTION_MAX]

        payload: dict[str, Any] = {
            "product_type": classification.category_path,
            "tags": ", ".join(tags),
        }
        seo_writes: dict[str, str] = {}
        if needs_overwrite(
            product.metafields_global_title_tag,
            WEAK_SEO_TITLE_LENGTH,
            options.replace_seo,
            next_title,
        ):
            payload["metafields_global_title_tag"] = next_title
            seo_writes["seo_title"] = next_title
        if needs_overwrite(
            product.metafields_global_description_tag,
            WEAK_SEO_DESCRIPTION_LENGTH,
            options.replace_seo,
            next_description,
        ):
            payload["metafields_global_description_tag"] = next_description
            seo_writes["seo_description"] = next_description
        if options.body_html:
            payload["body_html"] = options.body_html
        return payload, seo_writes

    async def _write_metafields(
        self,
        product: Product,
        classification: Classification,
        tags: list[str],
        source: str,
        seo_writes: dict[str, str],
    ) -> None:
        fields = {
            "category_path": classification.category_path,
            "ai_tags": ", ".join(tags),
            "lang": self.lang,
            "source": source,
            "method": classification.method.value,
            "confidence": str(classification.confidence),
            **seo_writes,
        }
        for key, value in fields.items():
            await self.shopify.set_metafield(product.id, key, value)
