"""DexScreener market data gateway for candidate discovery and pricing."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..core.errors import NetworkError
from ..core.interfaces import MarketFeed
from ..core.types import BaseToken, Opportunity
from .http import TokenBucket, get_json

logger = structlog.get_logger(__name__)


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def map_dexscreener_pair(data: dict[str, Any]) -> Opportunity:
    """Map a DexScreener pair object to an Opportunity.

    Args:
        data: Raw pair object from the API

    Returns:
        Opportunity with normalized data

    Raises:
        KeyError, TypeError, ValueError: If a mandatory field is missing or
            not numeric
    """
    base = data["baseToken"]
    return Opportunity(
        pair_address=data["pairAddress"],
        chain_id=data.get("chainId", "solana"),
        dex_id=data.get("dexId", "unknown"),
        base_token=BaseToken(
            address=base["address"],
            symbol=base.get("symbol") or "",
            name=base.get("name") or "",
        ),
        price_usd=float(data["priceUsd"]),
        liquidity_usd=float((data.get("liquidity") or {}).get("usd", 0)),
        volume_h24_usd=float((data.get("volume") or {}).get("h24", 0)),
        market_cap_usd=_as_float(data.get("marketCap")),
        url=data.get("url"),
    )


class DexScreenerGateway(MarketFeed):
    """Fetches candidate pairs and pair prices from the DexScreener API."""

    def __init__(
        self,
        base_url: str,
        session: httpx.AsyncClient,
        min_liquidity: float,
        min_volume: float,
        candidates_path: str = "pairs/solana",
        chain_id: str = "solana",
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_delay: float = 5.0,
        rate_limiter: TokenBucket | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize DexScreener gateway.

        Args:
            base_url: DexScreener API base URL
            session: Shared httpx client
            min_liquidity: Minimum pool liquidity in USD
            min_volume: Minimum 24h volume in USD
            candidates_path: Endpoint listing candidate pairs
            chain_id: Chain the pairs must belong to
            timeout: Per-request timeout in seconds
            max_attempts: Attempts for candidate fetches before giving up
            retry_delay: Base backoff; attempt N waits retry_delay * N
            rate_limiter: Optional shared rate limiter
            sleep: Sleep coroutine used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.min_liquidity = min_liquidity
        self.min_volume = min_volume
        self.candidates_path = candidates_path.strip("/")
        self.chain_id = chain_id
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.rate_limiter = rate_limiter
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Candidate fetch failed, retrying",
            attempt=retry_state.attempt_number,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    async def _get(self, endpoint: str) -> Any:
        return await get_json(
            self.session,
            f"{self.base_url}/{endpoint.lstrip('/')}",
            timeout=self.timeout,
            rate_limiter=self.rate_limiter,
        )

    def _meets_floor(self, opp: Opportunity) -> bool:
        return (
            opp.chain_id == self.chain_id
            and opp.liquidity_usd >= self.min_liquidity
            and opp.volume_h24_usd >= self.min_volume
        )

    async def fetch_candidates(self) -> list[Opportunity]:
        """Fetch candidate pairs meeting the liquidity and volume floors.

        Returns:
            Opportunities in feed order

        Raises:
            NetworkError: When every attempt failed
        """
        async for attempt in self._retrying():
            with attempt:
                data = await self._get(self.candidates_path)

        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not isinstance(pairs, list):
            logger.warning("Unexpected DexScreener response", path=self.candidates_path)
            return []

        candidates: list[Opportunity] = []
        for raw in pairs:
            try:
                opp = map_dexscreener_pair(raw)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(
                    "Skipping malformed pair",
                    pair_address=raw.get("pairAddress") if isinstance(raw, dict) else None,
                    error=str(e),
                )
                continue
            if self._meets_floor(opp):
                candidates.append(opp)

        logger.info(
            "Fetched candidates", received=len(pairs), kept=len(candidates)
        )
        return candidates

    async def fetch_price(self, pair_address: str) -> float:
        """Fetch the current USD price of a pair.

        Args:
            pair_address: Pool address

        Returns:
            Current price in USD

        Raises:
            NetworkError: On request failure or when the pair has no price
        """
        data = await self._get(f"pairs/{self.chain_id}/{pair_address}")

        pair = data.get("pair") if isinstance(data, dict) else None
        if pair is None and isinstance(data, dict) and data.get("pairs"):
            pair = data["pairs"][0]
        try:
            return float(pair["priceUsd"])
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(
                f"No price for pair {pair_address}",
                context={"pair_address": pair_address},
            ) from e
