"""
Shared upstream HTTP policy: rate limiting and retry with backoff.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from agroclim.core.exceptions import UpstreamUnavailable
from agroclim.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Enforces a minimum interval between consecutive upstream calls.

    One instance is shared by every caller of a client; callers queue on
    an asyncio.Lock so the interval holds across concurrent requests.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None

    async def wait(self) -> None:
        """Suspend until the next call is allowed, then claim the slot."""
        async with self._lock:
            if self._last_call is not None:
                remaining = self.min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_call = self._clock()


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    base_delay: float,
    description: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_retries`` attempts fail.

    Attempt ``k`` that fails is followed by a ``base_delay * 2**(k-1)``
    second pause. Only HTTP errors (network or non-2xx) are retried.

    Raises:
        UpstreamUnavailable: After the last attempt fails, chained to its error
    """
    attempts = max(1, max_retries)
    attempt = 0
    while True:
        try:
            return await operation()
        except httpx.HTTPError as e:
            attempt += 1
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            if attempt >= attempts:
                logger.error(f"{description} failed after {attempt} attempt(s): {e}")
                raise UpstreamUnavailable(
                    f"{description} failed after {attempt} attempt(s): {e}",
                    status_code=status_code,
                ) from e
            delay = base_delay * 2 ** (attempt - 1)
            logger.warning(f"{description} attempt {attempt}/{attempts} failed ({e}), retrying in {delay:.2f}s")
            await sleep(delay)


def build_http_client(user_agent: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create the AsyncClient shared by the upstream clients."""
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": user_agent},
        transport=transport,
    )
