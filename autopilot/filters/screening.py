"""Screening engine deciding whether an opportunity is tradeable."""

import structlog

from ..core.types import Opportunity, TradingParameters
from .basic import ThresholdFilter
from .keywords import KeywordFilter
from .safety import SafetyScanner

logger = structlog.get_logger(__name__)


class ScreeningEngine:
    """Combines the keyword, threshold and safety-scan checks."""

    def __init__(self, params: TradingParameters, scanner: SafetyScanner) -> None:
        self.keyword_filter = KeywordFilter(params.keywords)
        self.threshold_filter = ThresholdFilter(
            min_liquidity_usd=params.min_liquidity,
            min_volume_usd=params.min_volume,
            min_market_cap_usd=params.min_market_cap,
        )
        self.scanner = scanner

    def is_candidate(self, opp: Opportunity) -> bool:
        """Keyword match on symbol or name. Pure and synchronous."""
        return self.keyword_filter.evaluate(opp).accepted

    def meets_thresholds(self, opp: Opportunity) -> bool:
        return self.threshold_filter.evaluate(opp).accepted

    async def verify_safety(self, token_mint: str) -> bool:
        return await self.scanner.verify_safety(token_mint)
