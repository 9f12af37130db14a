"""Unit tests for ProductProcessor.

Tests cover:
- Idempotence keyed on the revision stamp
- Tag merging
- SEO overwrite gating
- Metafield writes and stamping order
- Failure wrapping and dry-run
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from catalog_sync.schemas.domain import (
    Classification,
    ClassificationMethod,
    ProcessOptions,
    ProcessStatus,
    Product,
)
from catalog_sync.services.processor import ProductProcessor, merge_tags, needs_overwrite
from catalog_sync.services.shopify.client import STAMP_KEY
from catalog_sync.utils.errors import ProcessingError, ShopifyAPIError, ValidationError


@pytest.fixture
def processor(fake_shopify, categorizer):
    return ProductProcessor(fake_shopify, categorizer, lang="en")


class TestMergeTags:
    """Test case-insensitive, order-preserving tag merge."""

    def test_first_seen_casing_wins(self):
        assert merge_tags(["Gift", "gift", "Serum"], ["serum", "Brightening"]) == [
            "Gift",
            "Serum",
            "Brightening",
        ]

    def test_replace_drops_existing(self):
        assert merge_tags(["Old"], ["new", "NEW"], replace=True) == ["new"]

    def test_capped_at_25(self):
        merged = merge_tags([f"t{i}" for i in range(20)], [f"n{i}" for i in range(20)])
        assert len(merged) == 25
        assert merged[-1] == "n4"

    def test_blank_tags_ignored(self):
        assert merge_tags(["", "  ", "A"], [None, "a"]) == ["A"]


class TestIdempotence:
    """Test that one revision is written once."""

    @pytest.mark.asyncio
    async def test_second_call_skipped(self, processor, fake_shopify, serum_product):
        first = await processor.process(serum_product, "webhook_update")
        second = await processor.process(serum_product, "webhook_update")

        assert first.status == ProcessStatus.PROCESSED
        assert second.status == ProcessStatus.SKIPPED
        assert second.reason == "already_processed"
        assert len(fake_shopify.updates) == 1

    @pytest.mark.asyncio
    async def test_new_revision_processed_again(self, processor, fake_shopify, serum_product):
        await processor.process(serum_product, "webhook_update")
        updated = serum_product.model_copy(update={"updated_at": "2024-06-05T00:00:00Z"})

        result = await processor.process(updated, "webhook_update")

        assert result.status == ProcessStatus.PROCESSED
        assert len(fake_shopify.updates) == 2

    @pytest.mark.asyncio
    async def test_force_ignores_stamp(self, processor, fake_shopify, serum_product):
        await processor.process(serum_product, "backfill")
        result = await processor.process(serum_product, "command_reprocess", ProcessOptions(force=True))

        assert result.status == ProcessStatus.PROCESSED
        assert len(fake_shopify.updates) == 2

    @pytest.mark.asyncio
    async def test_stamp_written_last(self, processor, fake_shopify, serum_product):
        await processor.process(serum_product, "backfill")

        keys = [key for _, key, _ in fake_shopify.metafield_writes]
        assert keys[-1] == STAMP_KEY
        assert fake_shopify.metafields[("1001", STAMP_KEY)] == "2024-06-01T10:00:00Z"


class TestPayload:
    """Test the written product payload and metafields."""

    @pytest.mark.asyncio
    async def test_payload_and_metafields(self, processor, fake_shopify, serum_product):
        result = await processor.process(serum_product, "webhook_create")

        product_id, payload = fake_shopify.updates[0]
        assert product_id == 1001
        assert payload["product_type"] == "Beauty > Skincare > Face Serums"
        assert payload["tags"].startswith("Gift, Serum, acme, face serums, skincare")
        assert result.tags[:2] == ["Gift", "Serum"]

        written = {key: value for _, key, value in fake_shopify.metafield_writes}
        assert written["category_path"] == "Beauty > Skincare > Face Serums"
        assert written["lang"] == "en"
        assert written["source"] == "webhook_create"
        assert written["method"] == "rules"
        assert written["confidence"] == "0.92"
        assert written["ai_tags"] == payload["tags"]

    @pytest.mark.asyncio
    async def test_body_override(self, processor, fake_shopify, serum_product):
        await processor.process(serum_product, "manual", ProcessOptions(body_html="<p>New</p>"))
        assert fake_shopify.updates[0][1]["body_html"] == "<p>New</p>"

    @pytest.mark.asyncio
    async def test_classification_override_skips_categorizer(self, fake_shopify, serum_product):
        categorizer = AsyncMock()
        processor = ProductProcessor(fake_shopify, categorizer)
        manual = Classification(
            category_path="Gifts",
            tags=["holiday"],
            confidence=0.99,
            method=ClassificationMethod.MANUAL,
        )

        result = await processor.process(serum_product, "command_manual", ProcessOptions(classification=manual))

        categorizer.categorize.assert_not_called()
        assert result.classification.method == ClassificationMethod.MANUAL
        assert fake_shopify.updates[0][1]["product_type"] == "Gifts"

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, processor, fake_shopify, serum_product):
        result = await processor.process(serum_product, "backfill", ProcessOptions(dry_run=True))

        assert result.status == ProcessStatus.DRY_RUN
        assert result.payload["product_type"] == "Beauty > Skincare > Face Serums"
        assert fake_shopify.updates == []
        assert fake_shopify.metafield_writes == []


class TestSeoPolicy:
    """Test the SEO overwrite thresholds."""

    @pytest.mark.asyncio
    async def test_strong_title_preserved(self, processor, fake_shopify, serum_product):
        product = serum_product.model_copy(update={"metafields_global_title_tag": "T" * 50})

        await processor.process(product, "backfill")

        payload = fake_shopify.updates[0][1]
        assert "metafields_global_title_tag" not in payload
        written = {key for _, key, _ in fake_shopify.metafield_writes}
        assert "seo_title" not in written

    @pytest.mark.asyncio
    async def test_weak_title_overwritten(self, processor, fake_shopify, serum_product):
        product = serum_product.model_copy(update={"metafields_global_title_tag": "T" * 10})

        await processor.process(product, "backfill")

        payload = fake_shopify.updates[0][1]
        assert payload["metafields_global_title_tag"] == "Acme Vitamin C Brightening Serum"

    @pytest.mark.asyncio
    async def test_replace_seo_overrides_strong_values(self, processor, fake_shopify, serum_product):
        product = serum_product.model_copy(update={
            "metafields_global_title_tag": "T" * 50,
            "metafields_global_description_tag": "D" * 120,
        })

        await processor.process(product, "manual", ProcessOptions(replace_seo=True))

        payload = fake_shopify.updates[0][1]
        assert payload["metafields_global_title_tag"] != "T" * 50
        assert payload["metafields_global_description_tag"].startswith("Discover")

    @pytest.mark.asyncio
    async def test_strong_description_threshold_is_80(self, processor, fake_shopify, serum_product):
        product = serum_product.model_copy(update={"metafields_global_description_tag": "D" * 79})

        await processor.process(product, "backfill")

        assert "metafields_global_description_tag" in fake_shopify.updates[0][1]

    @pytest.mark.asyncio
    async def test_seo_clipped_to_field_limits(self, fake_shopify, serum_product):
        manual = Classification(
            category_path="Gifts",
            seo_title="x" * 100,
            seo_description="y" * 400,
        )
        processor = ProductProcessor(fake_shopify, AsyncMock())

        await processor.process(serum_product, "manual", ProcessOptions(classification=manual))

        payload = fake_shopify.updates[0][1]
        assert len(payload["metafields_global_title_tag"]) == 70
        assert len(payload["metafields_global_description_tag"]) == 320

    @pytest.mark.asyncio
    async def test_empty_proposal_leaves_weak_seo_alone(self, fake_shopify, serum_product):
        product = serum_product.model_copy(update={
            "metafields_global_title_tag": "Short title",
            "metafields_global_description_tag": "Short",
        })
        manual = Classification(category_path="Gifts", method=ClassificationMethod.MANUAL)
        processor = ProductProcessor(fake_shopify, AsyncMock())

        await processor.process(product, "manual", ProcessOptions(classification=manual))

        payload = fake_shopify.updates[0][1]
        assert "metafields_global_title_tag" not in payload
        assert "metafields_global_description_tag" not in payload
        written = {key for _, key, _ in fake_shopify.metafield_writes}
        assert not {"seo_title", "seo_description"} & written

    @pytest.mark.parametrize(
        "current,replace,proposed,expected",
        [
            ("", False, "", False),
            ("Short", True, "", False),
            ("Short", False, "New title", True),
            ("T" * 50, False, "New title", False),
            ("T" * 50, True, "New title", True),
        ],
    )
    def test_needs_overwrite(self, current, replace, proposed, expected):
        assert needs_overwrite(current, 30, replace, proposed) is expected


class TestFailures:
    """Test error surfacing."""

    @pytest.mark.asyncio
    async def test_missing_id_rejected_before_remote_calls(self, processor, fake_shopify):
        with pytest.raises(ValidationError):
            await processor.process(Product(title="No id"), "webhook_create")
        assert fake_shopify.updates == []

    @pytest.mark.asyncio
    async def test_write_failure_leaves_stamp_unset(self, processor, fake_shopify, serum_product):
        fake_shopify.update_product = AsyncMock(side_effect=ShopifyAPIError("boom", status_code=422))

        with pytest.raises(ProcessingError) as exc_info:
            await processor.process(serum_product, "backfill")

        assert exc_info.value.product_id == 1001
        assert isinstance(exc_info.value.__cause__, ShopifyAPIError)
        assert ("1001", STAMP_KEY) not in fake_shopify.metafields

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, fake_shopify, serum_product):
        categorizer = AsyncMock()
        categorizer.categorize.side_effect = RuntimeError("kaboom")

        with pytest.raises(ProcessingError):
            await ProductProcessor(fake_shopify, categorizer).process(serum_product, "backfill")


class TestPerProductLock:
    """Test the opt-in per-product lock."""

    @pytest.mark.asyncio
    async def test_concurrent_same_product_written_once_with_lock(self, fake_shopify, categorizer, serum_product):
        processor = ProductProcessor(fake_shopify, categorizer, lock_per_product=True)

        results = await asyncio.gather(
            processor.process(serum_product, "webhook_update"),
            processor.process(serum_product, "webhook_update"),
        )

        statuses = sorted(r.status.value for r in results)
        assert statuses == ["processed", "skipped"]
        assert len(fake_shopify.updates) == 1
