"""
Shopify Admin API access.

Key Components:
    - ThrottledClient: single-lane rate limiter with one retry
    - ShopifyClient: product and metafield calls
    - ResourcePager: cursor pagination over the product listing
"""
from catalog_sync.services.shopify.client import STAMP_KEY, ShopifyClient, next_page_url
from catalog_sync.services.shopify.pager import ResourcePager
from catalog_sync.services.shopify.throttle import ThrottledClient, parse_retry_after

__all__ = [
    "STAMP_KEY",
    "ResourcePager",
    "ShopifyClient",
    "ThrottledClient",
    "next_page_url",
    "parse_retry_after",
]
