"""Dry-run swap executor: full control flow, no fund-moving I/O."""

import uuid
from collections import deque
from typing import Any

import structlog

from ..core.interfaces import SwapExecutor
from ..core.types import SwapResult

logger = structlog.get_logger(__name__)

SIMULATED_TX_PREFIX = "simulated-tx-id"
CALL_HISTORY_SIZE = 1_000


class DryRunExecutor(SwapExecutor):
    """Swap executor that never touches the network.

    Keeps the most recent `history_size` calls for inspection.
    """

    def __init__(self, history_size: int = CALL_HISTORY_SIZE) -> None:
        self.calls: deque[dict[str, Any]] = deque(maxlen=history_size)

    async def swap(self, input_mint: str, output_mint: str, amount: int) -> SwapResult:
        # Unique per call so ledger primary keys never collide
        tx_id = f"{SIMULATED_TX_PREFIX}-{uuid.uuid4().hex}"
        self.calls.append(
            {
                "input_mint": input_mint,
                "output_mint": output_mint,
                "amount": amount,
                "tx_id": tx_id,
            }
        )
        logger.info(
            "Dry run: would swap",
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            tx_id=tx_id,
        )
        return SwapResult(tx_id=tx_id, simulated=True)
