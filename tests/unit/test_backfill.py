"""Unit tests for BackfillService."""
from unittest.mock import AsyncMock

import pytest

from catalog_sync.schemas.domain import Product
from catalog_sync.services.backfill import BackfillService
from catalog_sync.services.processor import ProductProcessor
from catalog_sync.services.shopify.pager import ResourcePager
from catalog_sync.utils.errors import ShopifyAPIError, ValidationError

from conftest import FakeShopify


def make_products(count):
    return [
        Product(id=2000 + i, title=f"Night Serum {i}", vendor="Acme", updated_at="2024-06-01T00:00:00Z")
        for i in range(count)
    ]


@pytest.fixture
def shop():
    return FakeShopify(make_products(5), page_size=2)


@pytest.fixture
def service(shop, categorizer):
    return BackfillService(ResourcePager(shop), ProductProcessor(shop, categorizer))


class TestBackfill:
    """Test bulk passes over the listing."""

    @pytest.mark.asyncio
    async def test_processes_every_page(self, service, shop):
        result = await service.run()

        assert result == {"processed": 5, "skipped": 0, "failed": 0, "failures": []}
        assert len(shop.updates) == 5

    @pytest.mark.asyncio
    async def test_second_pass_skips_everything(self, service, shop):
        await service.run()
        result = await service.run()

        assert result["skipped"] == 5
        assert result["processed"] == 0
        assert len(shop.updates) == 5

    @pytest.mark.asyncio
    async def test_limit(self, service, shop):
        result = await service.run(limit=3)

        assert result["processed"] == 3
        assert [pid for pid, _ in shop.updates] == [2000, 2001, 2002]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [-1, 0])
    async def test_non_positive_limit_rejected(self, service, shop, limit):
        with pytest.raises(ValidationError):
            await service.run(limit=limit)
        assert shop.updates == []

    @pytest.mark.asyncio
    async def test_source_recorded(self, service, shop):
        await service.run(source="backfill-cli", limit=1)
        assert shop.metafields[("2000", "source")] == "backfill-cli"

    @pytest.mark.asyncio
    async def test_failed_item_does_not_stop_pass(self, service, shop):
        original = shop.update_product

        async def flaky(product_id, payload):
            if product_id == 2001:
                raise ShopifyAPIError("Unprocessable", status_code=422)
            return await original(product_id, payload)

        shop.update_product = flaky

        result = await service.run()

        assert result["processed"] == 4
        assert result["failed"] == 1
        assert result["failures"][0]["id"] == 2001

    @pytest.mark.asyncio
    async def test_product_without_id_counted_as_failure(self, shop, categorizer):
        shop.products["broken"] = Product(title="No id")
        service = BackfillService(ResourcePager(shop), ProductProcessor(shop, categorizer))

        result = await service.run()

        assert result["failed"] == 1
        assert result["processed"] == 5

    @pytest.mark.asyncio
    async def test_listing_failure_aborts(self, service, shop):
        shop.list_products_page = AsyncMock(side_effect=ShopifyAPIError("Forbidden", status_code=403))

        with pytest.raises(ShopifyAPIError):
            await service.run()

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, service, shop):
        result = await service.run(dry_run=True)

        assert result["processed"] == 5
        assert shop.updates == []
        assert shop.metafield_writes == []

    @pytest.mark.asyncio
    async def test_progress_callback(self, categorizer):
        shop = FakeShopify(make_products(50), page_size=250)
        service = BackfillService(ResourcePager(shop), ProductProcessor(shop, categorizer))
        seen = []

        await service.run(dry_run=True, on_progress=lambda done, total: seen.append((done, total)))

        assert seen == [(25, 50), (50, 50)]
