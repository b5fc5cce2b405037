"""Liquidity, volume and market cap threshold filter."""

import structlog

from ..core.interfaces import Filter
from ..core.types import FilterDecision, Opportunity

logger = structlog.get_logger(__name__)


class ThresholdFilter(Filter):
    """Rejects pairs below the configured market depth thresholds."""

    def __init__(
        self,
        min_liquidity_usd: float = 30_000.0,
        min_volume_usd: float = 300_000.0,
        min_market_cap_usd: float = 100_000.0,
    ) -> None:
        """Initialize threshold filter."""
        self.min_liquidity_usd = min_liquidity_usd
        self.min_volume_usd = min_volume_usd
        self.min_market_cap_usd = min_market_cap_usd

    def evaluate(self, opp: Opportunity) -> FilterDecision:
        """Evaluate an opportunity against the thresholds."""
        reasons = []
        score = 1.0

        if opp.liquidity_usd < self.min_liquidity_usd:
            reasons.append(
                f"Liquidity too low: ${opp.liquidity_usd:.2f} < ${self.min_liquidity_usd:.2f}"
            )
            score -= 0.4

        if opp.volume_h24_usd < self.min_volume_usd:
            reasons.append(
                f"Volume too low: ${opp.volume_h24_usd:.2f} < ${self.min_volume_usd:.2f}"
            )
            score -= 0.4

        # Not every pair reports a market cap; only judge it when present
        if (
            opp.market_cap_usd is not None
            and opp.market_cap_usd < self.min_market_cap_usd
        ):
            reasons.append(
                f"Market cap too low: ${opp.market_cap_usd:.2f} < ${self.min_market_cap_usd:.2f}"
            )
            score -= 0.2

        accepted = len(reasons) == 0
        if accepted:
            reasons.append("Passed threshold criteria")

        logger.debug(
            "Threshold filter evaluation",
            pair_address=opp.pair_address,
            accepted=accepted,
            score=score,
            reasons=reasons,
        )

        return FilterDecision(accepted=accepted, score=max(score, 0.0), reasons=reasons)
