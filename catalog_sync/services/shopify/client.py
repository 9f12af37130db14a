"""
Shopify Admin API Client
========================

Async REST client for product and metafield resources. Every request
goes through the shop's ThrottledClient lane.

Usage:
    async with ShopifyClient(settings) as shopify:
        product = await shopify.get_product(123)
        await shopify.update_product(123, {"product_type": "Beauty"})
"""

from typing import Any

import httpx

from catalog_sync.config.settings import ShopifySettings
from catalog_sync.schemas.domain import Product
from catalog_sync.services.shopify.throttle import ThrottledClient
from catalog_sync.utils.errors import (
    ConfigurationError,
    ProductNotFoundError,
    ShopifyAPIError,
)
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

STAMP_KEY = "last_processed_updated_at"


class ShopifyClient:
    """
    Admin API resource client.

    Features:
    - Product fetch/update
    - Paged product listing (see ResourcePager)
    - Metafield read/create/update/delete under one namespace
    """

    def __init__(
        self,
        settings: ShopifySettings,
        throttle: ThrottledClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.shop:
            raise ConfigurationError("SHOPIFY_SHOP missing")
        if not settings.access_token:
            raise ConfigurationError("SHOPIFY_ACCESS_TOKEN missing")

        self.settings = settings
        self.base_url = settings.base_url
        self.namespace = settings.metafield_namespace
        self.throttle = throttle or ThrottledClient(
            min_interval=settings.min_interval_ms / 1000,
            default_retry_after=settings.default_retry_after,
        )
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.timeout,
            transport=transport,
            headers={
                "X-Shopify-Access-Token": settings.access_token,
                "Content-Type": "application/json",
                "User-Agent": "catalog-sync/1.0",
            },
        )
        self._log = logger.bind(component="ShopifyClient", shop=settings.shop)

    async def __aenter__(self) -> "ShopifyClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if not self._http.is_closed:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Issue one request through the throttle lane."""
        return await self.throttle.call(
            lambda: self._http.request(method, url, params=params, json=json)
        )

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    async def get_product(self, product_id: int | str) -> Product:
        """
        Fetch one product.

        Raises:
            ProductNotFoundError: If the API answers 404
        """
        try:
            response = await self.request("GET", f"/products/{product_id}.json")
        except ShopifyAPIError as e:
            if e.status_code == 404:
                raise ProductNotFoundError(f"Product {product_id} not found") from e
            raise
        return Product.model_validate(response.json()["product"])

    async def list_products_page(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> tuple[list[Product], str | None]:
        """
        Fetch one listing page.

        Returns:
            (products, next page URL or None)
        """
        response = await self.request("GET", url, params=params)
        products = [
            Product.model_validate(item) for item in response.json().get("products", [])
        ]
        return products, next_page_url(response)

    async def update_product(
        self, product_id: int | str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Write changed product fields in one PUT."""
        response = await self.request(
            "PUT",
            f"/products/{product_id}.json",
            json={"product": {"id": product_id, **payload}},
        )
        self._log.debug("product_updated", product_id=product_id, fields=sorted(payload))
        return response.json().get("product", {})

    # -------------------------------------------------------------------------
    # Metafields
    # -------------------------------------------------------------------------

    async def get_metafield(self, product_id: int | str, key: str) -> dict[str, Any] | None:
        """Return the product metafield ``namespace.key`` or None."""
        try:
            response = await self.request(
                "GET",
                f"/products/{product_id}/metafields.json",
                params={"namespace": self.namespace, "key": key},
            )
        except ShopifyAPIError as e:
            if e.status_code == 404:
                return None
            raise
        metafields = response.json().get("metafields") or []
        return metafields[0] if metafields else None

    async def set_metafield(
        self,
        product_id: int | str,
        key: str,
        value: str,
        type: str = "single_line_text_field",
    ) -> None:
        """Create the metafield, or update it in place when it already exists."""
        existing = await self.get_metafield(product_id, key)
        if existing:
            await self.request(
                "PUT",
                f"/metafields/{existing['id']}.json",
                json={"metafield": {"id": existing["id"], "value": value}},
            )
            return
        await self.request(
            "POST",
            f"/products/{product_id}/metafields.json",
            json={
                "metafield": {
                    "namespace": self.namespace,
                    "key": key,
                    "type": type,
                    "value": value,
                }
            },
        )

    async def delete_metafield(self, metafield_id: int | str) -> None:
        await self.request("DELETE", f"/metafields/{metafield_id}.json")

    # -------------------------------------------------------------------------
    # Processing state
    # -------------------------------------------------------------------------

    async def get_processed_stamp(self, product_id: int | str) -> str | None:
        """Revision stamp recorded by the last successful processing run."""
        metafield = await self.get_metafield(product_id, STAMP_KEY)
        return metafield.get("value") if metafield else None

    async def set_processed_stamp(self, product_id: int | str, updated_at: str) -> None:
        await self.set_metafield(product_id, STAMP_KEY, updated_at)


def next_page_url(response: httpx.Response) -> str | None:
    """
    Extract the rel="next" URL from the Link header.

    A missing or malformed header means there is no next page.
    """
    try:
        link = response.links.get("next")
    except (ValueError, IndexError, KeyError):
        return None
    if not link:
        return None
    url = link.get("url")
    return url or None
