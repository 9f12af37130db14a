"""
Request Authentication
======================

Webhook signature verification and shared-secret checks. All
comparisons are constant-time.
"""

import base64
import hashlib
import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security.api_key import APIKeyHeader

from catalog_sync.container import ServiceContainer
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

WEBHOOK_HMAC_HEADER = "X-Shopify-Hmac-Sha256"

backfill_token_header = APIKeyHeader(name="X-Backfill-Token", auto_error=False)
command_token_header = APIKeyHeader(name="X-Command-Token", auto_error=False)


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    """base64(HMAC-SHA256(secret, body))"""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_hmac(body: bytes, signature: str | None, secret: str) -> bool:
    """True when ``signature`` matches the body's HMAC; missing values never match."""
    if not signature or not secret:
        return False
    expected = compute_webhook_hmac(body, secret)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def tokens_match(supplied: str | None, expected: str) -> bool:
    """Constant-time shared-secret check; an unset expected token rejects everything."""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


async def require_backfill_token(
    container: ContainerDep,
    token: str | None = Security(backfill_token_header),
) -> None:
    """
    Validate X-Backfill-Token.

    Raises:
        HTTPException: 401 if the token is missing, wrong, or not configured
    """
    if not tokens_match(token, container.settings.backfill_token):
        logger.warning("backfill_unauthorized", token_supplied=bool(token))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


def check_command_token(container: ServiceContainer, token: str | None) -> None:
    """
    Validate a command token taken from the header or the request body.

    Raises:
        HTTPException: 503 if no command token is configured, 401 on mismatch
    """
    expected = container.settings.command_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="COMMAND_TOKEN not configured",
        )
    if not tokens_match(token, expected):
        logger.warning("command_unauthorized", token_supplied=bool(token))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


async def require_command_token(
    container: ContainerDep,
    token: str | None = Security(command_token_header),
) -> None:
    """Header-only variant of the command token check, for read endpoints."""
    check_command_token(container, token)
