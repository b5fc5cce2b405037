"""Shared HTTP helpers: rate limiting and JSON GETs with typed failures."""

import asyncio
import time
from typing import Any

import httpx
import structlog

from ..core.errors import NetworkError

logger = structlog.get_logger(__name__)


class TokenBucket:
    """Simple in-memory token bucket rate limiter."""

    def __init__(self, capacity: int, refill_rate: float) -> None:
        """Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket
            refill_rate: Tokens per second refill rate
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.monotonic()

    @classmethod
    def per_minute(cls, requests: int) -> "TokenBucket":
        return cls(capacity=requests, refill_rate=requests / 60)

    async def acquire(self) -> bool:
        """Try to acquire a token, return True if successful."""
        now = time.monotonic()
        time_passed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + time_passed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    async def wait(self) -> None:
        """Block until a token is available."""
        while not await self.acquire():
            await asyncio.sleep(0.1)


async def get_json(
    session: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: float,
    rate_limiter: TokenBucket | None = None,
) -> Any:
    """GET `url` and decode the JSON body.

    Raises:
        NetworkError: On transport errors, timeouts, non-2xx statuses or
            bodies that are not JSON
    """
    if rate_limiter is not None:
        await rate_limiter.wait()

    try:
        response = await session.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        logger.warning(
            "HTTP error response",
            url=url,
            status_code=e.response.status_code,
        )
        raise NetworkError(
            f"HTTP {e.response.status_code} from {url}",
            context={"url": url, "status_code": e.response.status_code},
        ) from e
    except httpx.TimeoutException as e:
        logger.warning("HTTP request timed out", url=url, timeout=timeout)
        raise NetworkError(f"Timeout after {timeout}s: {url}", context={"url": url}) from e
    except httpx.HTTPError as e:
        logger.warning("HTTP request failed", url=url, error=str(e))
        raise NetworkError(f"Request failed: {url}: {e}", context={"url": url}) from e
    except ValueError as e:
        logger.warning("Malformed JSON response", url=url, error=str(e))
        raise NetworkError(f"Malformed JSON from {url}", context={"url": url}) from e
