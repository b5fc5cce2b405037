"""Third-party token safety scans (RugCheck and Honeypot.is)."""

import asyncio
from typing import Any

import httpx
import structlog

from ..data.http import TokenBucket, get_json

logger = structlog.get_logger(__name__)


def rugcheck_is_safe(data: Any, max_risk_score: float) -> bool:
    """Judge a RugCheck scan response.

    Raises:
        ValueError: If the response carries no numeric risk score
    """
    if not isinstance(data, dict):
        raise ValueError("RugCheck response is not an object")
    score = data.get("riskScore")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError(f"RugCheck risk score missing or not numeric: {score!r}")
    return not data.get("isHoneypot") and score < max_risk_score


def honeypot_is_safe(data: Any) -> bool:
    """Judge a Honeypot.is response; only an explicit False flag is safe."""
    if not isinstance(data, dict):
        raise ValueError("Honeypot response is not an object")
    flag = data.get("isHoneypot")
    if flag is None:
        flag = (data.get("honeypotResult") or {}).get("isHoneypot")
    return flag is False


class SafetyScanner:
    """Runs both safety scans concurrently and fails closed."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        rugcheck_base: str = "https://api.rugcheck.xyz/v1",
        honeypot_base: str = "https://api.honeypot.is/v2",
        max_risk_score: float = 50.0,
        timeout: float = 10.0,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        """Initialize safety scanner.

        Args:
            session: Shared httpx client
            rugcheck_base: RugCheck API base URL
            honeypot_base: Honeypot.is API base URL
            max_risk_score: Risk scores at or above this value are unsafe
            timeout: Per-request timeout in seconds
            rate_limiter: Optional shared rate limiter
        """
        self.session = session
        self.rugcheck_base = rugcheck_base.rstrip("/")
        self.honeypot_base = honeypot_base.rstrip("/")
        self.max_risk_score = max_risk_score
        self.timeout = timeout
        self.rate_limiter = rate_limiter

    async def _rugcheck(self, mint: str) -> Any:
        return await get_json(
            self.session,
            f"{self.rugcheck_base}/tokens/{mint}/scan",
            timeout=self.timeout,
            rate_limiter=self.rate_limiter,
        )

    async def _honeypot(self, mint: str) -> Any:
        return await get_json(
            self.session,
            f"{self.honeypot_base}/IsHoneypot",
            params={"address": mint},
            timeout=self.timeout,
            rate_limiter=self.rate_limiter,
        )

    async def verify_safety(self, mint: str) -> bool:
        """Return True only when both scans report the token safe.

        Any failure (network, timeout, malformed response) yields False.
        Never retried; the opportunity is simply skipped this tick.
        """
        try:
            rug_data, honeypot_data = await asyncio.gather(
                self._rugcheck(mint), self._honeypot(mint)
            )
            rug_safe = rugcheck_is_safe(rug_data, self.max_risk_score)
            honeypot_safe = honeypot_is_safe(honeypot_data)
        except Exception as e:
            logger.error("Security check error", token_mint=mint, error=str(e))
            return False

        safe = rug_safe and honeypot_safe
        logger.info(
            "Security check completed",
            token_mint=mint,
            safe=safe,
            rugcheck_safe=rug_safe,
            honeypot_safe=honeypot_safe,
        )
        return safe
