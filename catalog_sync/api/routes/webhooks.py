"""
Webhook Routes
==============

Shopify product webhooks.

Endpoints:
- POST /webhooks/shopify/products - topic taken from X-Shopify-Topic
- POST /webhooks/products_create - legacy per-topic route
- POST /webhooks/products_update - legacy per-topic route

The signature is checked against the raw body before anything is parsed.
Processing is handed to the work queue and never awaited here.
"""

import json

from fastapi import APIRouter, Header, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.api.security import WEBHOOK_HMAC_HEADER, ContainerDep, verify_webhook_hmac
from catalog_sync.container import ServiceContainer
from catalog_sync.schemas.domain import Product
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

TOPIC_SOURCES = {
    "products/create": "webhook_create",
    "products/update": "webhook_update",
}


def _parse_product(body: bytes) -> Product | None:
    try:
        data = json.loads(body)
        return Product.model_validate(data)
    except (ValueError, PydanticValidationError) as e:
        logger.error("webhook_payload_invalid", error=str(e))
        return None


async def _intake(
    request: Request,
    container: ServiceContainer,
    topic: str,
    signature: str | None,
    legacy: bool = False,
) -> PlainTextResponse:
    body = await request.body()
    if not verify_webhook_hmac(body, signature, container.shopify_settings.app_webhook_secret):
        logger.warning("webhook_hmac_failed", topic=topic, legacy=legacy)
        return PlainTextResponse("HMAC failed", status_code=status.HTTP_401_UNAUTHORIZED)

    product = _parse_product(body)
    if product is None:
        return PlainTextResponse("invalid payload", status_code=status.HTTP_400_BAD_REQUEST)

    source = TOPIC_SOURCES.get(topic)
    if source is None:
        logger.warning("webhook_topic_unhandled", topic=topic)
        return PlainTextResponse("ok")

    container.work_queue.submit(
        container.processor.process(product, source),
        {"product_id": product.id, "topic": topic, "legacy": legacy},
    )
    logger.info("webhook_accepted", product_id=product.id, topic=topic, legacy=legacy)
    return PlainTextResponse("ok")


@router.post("/shopify/products", response_class=PlainTextResponse, summary="Product webhook")
async def product_webhook(
    request: Request,
    container: ContainerDep,
    x_shopify_topic: str = Header(default=""),
    x_shopify_hmac_sha256: str | None = Header(default=None, alias=WEBHOOK_HMAC_HEADER),
) -> PlainTextResponse:
    return await _intake(request, container, x_shopify_topic.lower(), x_shopify_hmac_sha256)


@router.post("/products_create", response_class=PlainTextResponse, include_in_schema=False)
async def legacy_products_create(
    request: Request,
    container: ContainerDep,
    x_shopify_hmac_sha256: str | None = Header(default=None, alias=WEBHOOK_HMAC_HEADER),
) -> PlainTextResponse:
    return await _intake(
        request, container, "products/create", x_shopify_hmac_sha256, legacy=True
    )


@router.post("/products_update", response_class=PlainTextResponse, include_in_schema=False)
async def legacy_products_update(
    request: Request,
    container: ContainerDep,
    x_shopify_hmac_sha256: str | None = Header(default=None, alias=WEBHOOK_HMAC_HEADER),
) -> PlainTextResponse:
    return await _intake(
        request, container, "products/update", x_shopify_hmac_sha256, legacy=True
    )
