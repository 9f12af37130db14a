"""
Throttled Client
================

Single-lane scheduler for every outbound Admin API call of one shop.

- One call in flight at a time
- Minimum spacing between dispatches (default 400 ms)
- 429 / 5xx / transport failures: wait Retry-After (default 2 s), retry once
- Other 4xx: raised immediately

Usage:
    throttle = ThrottledClient(min_interval=0.4)
    response = await throttle.call(lambda: http.get("/products/1.json"))
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from catalog_sync.utils.errors import ShopifyAPIError, TransientAPIError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[httpx.Response]]


def parse_retry_after(value: str | None, default: float) -> float:
    """Parse a Retry-After header given in seconds; fall back to ``default``."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


def _describe(response: httpx.Response) -> str:
    try:
        request = response.request
    except RuntimeError:
        return f"HTTP {response.status_code}"
    return f"HTTP {response.status_code} from {request.method} {request.url.path}"


class ThrottledClient:
    """
    Funnels calls through one ordered lane.

    Attributes:
        min_interval: Minimum seconds between two dispatches
        default_retry_after: Back-off when the response carries no Retry-After
    """

    def __init__(
        self,
        min_interval: float = 0.4,
        default_retry_after: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self.default_retry_after = default_retry_after
        self._clock = clock
        self._sleep = sleep
        self._lane = asyncio.Lock()
        self._last_dispatch: float | None = None
        self._log = logger.bind(component="ThrottledClient")

    async def call(self, operation: Operation) -> httpx.Response:
        """
        Run ``operation`` inside the lane.

        Args:
            operation: Zero-argument coroutine factory producing a response

        Returns:
            The successful response (status < 400)

        Raises:
            TransientAPIError: 429/5xx/transport failure on both attempts
            ShopifyAPIError: Any other error status
        """
        async with self._lane:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(2),
                wait=self._wait_retry_after,
                retry=retry_if_exception_type(TransientAPIError),
                before_sleep=self._log_retry,
                sleep=self._sleep,
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    return await self._dispatch(operation)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def _dispatch(self, operation: Operation) -> httpx.Response:
        await self._wait_for_slot()
        self._last_dispatch = self._clock()
        try:
            response = await operation()
        except httpx.HTTPStatusError as e:
            response = e.response
        except httpx.TransportError as e:
            raise TransientAPIError(
                f"Transport error: {e}",
                retry_after=self.default_retry_after,
            ) from e
        self._check_status(response)
        return response

    async def _wait_for_slot(self) -> None:
        if self._last_dispatch is None:
            return
        elapsed = self._clock() - self._last_dispatch
        remaining = self.min_interval - elapsed
        if remaining > 0:
            await self._sleep(remaining)

    def _check_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        body = response.text[:200]
        message = _describe(response)
        if status == 429 or status >= 500:
            raise TransientAPIError(
                message,
                status_code=status,
                retry_after=parse_retry_after(
                    response.headers.get("retry-after"), self.default_retry_after
                ),
                details={"body": body},
            )
        raise ShopifyAPIError(
            message,
            status_code=status,
            details={"body": body},
        )

    def _wait_retry_after(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, TransientAPIError) and exc.retry_after is not None:
            return exc.retry_after
        return self.default_retry_after

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self._log.warning(
            "throttle_retry_scheduled",
            attempt=retry_state.attempt_number,
            status=getattr(exc, "status_code", None),
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )
