"""Keyword classifier for meme-coin candidates.

This is a naming heuristic, not a legitimacy check: copycat tokens that borrow
a popular name pass, and genuine meme coins with unrelated names do not.
"""

from collections.abc import Iterable

import structlog

from ..core.interfaces import Filter
from ..core.types import FilterDecision, Opportunity

logger = structlog.get_logger(__name__)


class KeywordFilter(Filter):
    """Accepts pairs whose token symbol or name contains a keyword."""

    def __init__(self, keywords: Iterable[str]) -> None:
        self.keywords = tuple(kw.lower() for kw in keywords if kw)

    def match(self, opp: Opportunity) -> str | None:
        """Return the first keyword found in the symbol or name."""
        symbol = opp.base_token.symbol.lower()
        name = opp.base_token.name.lower()
        for kw in self.keywords:
            if kw in symbol or kw in name:
                return kw
        return None

    def evaluate(self, opp: Opportunity) -> FilterDecision:
        keyword = self.match(opp)
        if keyword is None:
            return FilterDecision(
                accepted=False, score=0.0, reasons=["No keyword in symbol or name"]
            )
        return FilterDecision(
            accepted=True, score=1.0, reasons=[f"Matched keyword: {keyword}"]
        )
