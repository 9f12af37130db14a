"""
Resource Pager
==============

Walks the cursor-paginated product listing and materializes the full
working set. Each call starts from the first page, so a failed walk can
simply be restarted.
"""

from collections.abc import AsyncIterator

from catalog_sync.schemas.domain import Product
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)


class ResourcePager:
    """
    Follows rel="next" links until the listing is exhausted.

    Example:
        pager = ResourcePager(shopify)
        products = await pager.fetch_all(since="2024-06-01T00:00:00Z")
    """

    def __init__(self, client: ShopifyClient, page_size: int | None = None) -> None:
        self.client = client
        self.page_size = page_size or client.settings.page_size
        self._log = logger.bind(component="ResourcePager")

    async def iter_pages(self, since: str | None = None) -> AsyncIterator[list[Product]]:
        """Yield one list of products per listing page."""
        params: dict[str, str | int] | None = {"limit": self.page_size, "status": "any"}
        if since:
            params["updated_at_min"] = since

        url: str | None = "/products.json"
        page = 0
        while url:
            products, next_url = await self.client.list_products_page(url, params=params)
            page += 1
            self._log.debug("page_fetched", page=page, items=len(products))
            yield products
            # The next link already carries the cursor and page size
            url, params = next_url, None

    async def fetch_all(self, since: str | None = None) -> list[Product]:
        """Materialize every product, optionally only those updated at/after ``since``."""
        items: list[Product] = []
        async for products in self.iter_pages(since=since):
            items.extend(products)
        self._log.info("listing_complete", count=len(items), since=since)
        return items
