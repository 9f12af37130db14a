"""
Test Configuration and Fixtures
================================

Shared pytest fixtures for catalog-sync tests.
"""

import json
from typing import Any

import pytest

from catalog_sync.config.settings import Settings, ShopifySettings
from catalog_sync.schemas.domain import Product
from catalog_sync.services.categorizer import Categorizer
from catalog_sync.services.classification import RuleClassifier, RuleStore
from catalog_sync.services.shopify.client import STAMP_KEY
from catalog_sync.utils.errors import ProductNotFoundError


class FakeShopify:
    """
    In-memory stand-in for ShopifyClient.

    Records every write so tests can assert on remote side effects.
    """

    def __init__(self, products: list[Product] | None = None, page_size: int = 2) -> None:
        self.settings = ShopifySettings(shop="test.myshopify.com", access_token="x", page_size=page_size)
        self.products: dict[str, Product] = {str(p.id): p for p in products or []}
        self.metafields: dict[tuple[str, str], str] = {}
        self.updates: list[tuple[Any, dict[str, Any]]] = []
        self.metafield_writes: list[tuple[Any, str, str]] = []
        self.closed = False

    async def get_product(self, product_id):
        product = self.products.get(str(product_id))
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} not found")
        return product

    async def update_product(self, product_id, payload):
        self.updates.append((product_id, payload))
        return {"id": product_id, **payload}

    async def get_metafield(self, product_id, key):
        value = self.metafields.get((str(product_id), key))
        return {"id": f"{product_id}-{key}", "value": value} if value is not None else None

    async def set_metafield(self, product_id, key, value, type="single_line_text_field"):
        self.metafields[(str(product_id), key)] = value
        self.metafield_writes.append((product_id, key, value))

    async def get_processed_stamp(self, product_id):
        return self.metafields.get((str(product_id), STAMP_KEY))

    async def set_processed_stamp(self, product_id, updated_at):
        await self.set_metafield(product_id, STAMP_KEY, updated_at)

    async def list_products_page(self, url, params=None):
        items = list(self.products.values())
        size = self.settings.page_size
        offset = 0 if url == "/products.json" else int(url.rsplit("=", 1)[1])
        page = items[offset : offset + size]
        next_offset = offset + size
        next_url = f"/products.json?page_info={next_offset}" if next_offset < len(items) else None
        return page, next_url

    async def close(self):
        self.closed = True


TEST_RULES = {
    "fallback_category": "Miscellaneous",
    "rules": [
        {
            "name": "serums",
            "category": "Beauty > Skincare > Face Serums",
            "keywords": ["serum", "ampoule"],
            "tags": ["skincare"],
            "confidence": 0.92,
        },
        {
            "name": "lips",
            "category": "Beauty > Makeup > Lips",
            "regex": "lipstick|lip gloss",
            "tags": ["makeup"],
        },
        {
            "name": "candles",
            "category": "Home & Kitchen > Home Fragrance > Candles",
            "keywords": ["candle"],
            "confidence": 0.6,
        },
    ],
}


@pytest.fixture
def rules_file(tmp_path):
    """Writable rule file with a small rule set."""
    path = tmp_path / "rules.json"
    path.write_text(json.dumps(TEST_RULES), encoding="utf-8")
    return path


@pytest.fixture
def rule_store(rules_file):
    return RuleStore(rules_file)


@pytest.fixture
def rule_classifier(rule_store):
    return RuleClassifier(rule_store)


@pytest.fixture
def categorizer(rule_classifier):
    """Rule-only categorizer."""
    return Categorizer(rule_classifier)


@pytest.fixture
def serum_product():
    """Product that matches the serum rule with high confidence."""
    return Product(
        id=1001,
        title="Vitamin C Brightening Serum",
        vendor="Acme",
        body_html="<p>A daily <b>serum</b> for radiant skin.</p>",
        tags="Gift, gift, Serum",
        updated_at="2024-06-01T10:00:00Z",
    )


@pytest.fixture
def candle_product():
    """Product that matches a low-confidence rule."""
    return Product(
        id=1002,
        title="Lavender Soy Candle",
        vendor="Glow Co",
        body_html="Hand-poured candle.",
        product_type="",
        updated_at="2024-06-02T10:00:00Z",
        options=[{"name": "Size", "values": ["Small", "Large"]}],
        variants=[{"title": "Small"}, {"title": "Large"}],
    )


@pytest.fixture
def fake_shopify(serum_product, candle_product):
    return FakeShopify([serum_product, candle_product])


@pytest.fixture
def app_settings(rules_file):
    """Application settings for wiring tests."""
    return Settings(
        environment="development",
        rules_path=rules_file,
        backfill_token="backfill-secret",
        command_token="command-secret",
        content_language="en",
    )
