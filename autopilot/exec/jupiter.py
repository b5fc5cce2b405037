"""Jupiter swap executor for live Solana trading."""

import base64
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from ..core.errors import NetworkError, RouteError, SubmissionError
from ..core.interfaces import SwapExecutor
from ..core.types import Route, SwapResult
from ..data.http import get_json

logger = structlog.get_logger(__name__)


@runtime_checkable
class Signer(Protocol):
    """Holds the wallet key and signs swap transactions."""

    def pubkey_base58(self) -> str:
        ...

    def sign_transaction(self, txn_bytes: bytes) -> bytes:
        ...


@runtime_checkable
class Sender(Protocol):
    """Submits signed transactions and waits for them to land."""

    async def send(self, tx_base64: str, skip_preflight: bool = False) -> str:
        ...

    async def confirm_signature(
        self,
        signature: str,
        commitment: str = "confirmed",
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]:
        ...


def build_quote_params(
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    only_direct_routes: bool = False,
) -> dict[str, Any]:
    """Query string for an exact-input quote.

    `amount` is in the input mint's smallest unit: lamports when buying,
    raw token units when selling.
    """
    return {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "amount": str(amount),
        "slippageBps": slippage_bps,
        "swapMode": "ExactIn",
        "onlyDirectRoutes": str(only_direct_routes).lower(),
    }


def extract_routes(quote_response: Any) -> list[Route]:
    """Normalize a quote response into a list of routes.

    Accepts a list payload under "routes" or "data", or a single quote object
    carrying "outAmount". Entries without a numeric output are dropped. The
    guaranteed minimum comes from "otherAmountThreshold" when present.
    """
    if isinstance(quote_response, dict):
        if isinstance(quote_response.get("routes"), list):
            raw_routes = quote_response["routes"]
        elif isinstance(quote_response.get("data"), list):
            raw_routes = quote_response["data"]
        elif "outAmount" in quote_response:
            raw_routes = [quote_response]
        else:
            raw_routes = []
    elif isinstance(quote_response, list):
        raw_routes = quote_response
    else:
        raw_routes = []

    routes = []
    for raw in raw_routes:
        try:
            out_amount = int(raw["outAmount"])
            threshold = raw.get("otherAmountThreshold")
            routes.append(
                Route(
                    out_amount=out_amount,
                    min_out_amount=int(threshold) if threshold is not None else None,
                    raw=raw,
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping route with malformed amounts")
    return routes


def select_best_route(routes: list[Route]) -> Route:
    """Pick the route with the strictly greatest output; first seen wins ties.

    Raises:
        RouteError: If `routes` is empty
    """
    if not routes:
        raise RouteError("No valid routes found")
    best = routes[0]
    for route in routes[1:]:
        if route.out_amount > best.out_amount:
            best = route
    return best


class JupiterExecutor(SwapExecutor):
    """Quotes, signs, submits and confirms swaps through Jupiter."""

    def __init__(
        self,
        base_url: str,
        max_slippage_bps: int,
        signer: Signer,
        sender: Sender,
        session: httpx.AsyncClient,
        priority_fee_microlamports: int = 0,
        timeout: float = 30.0,
        confirm_timeout: float = 60.0,
    ) -> None:
        """Initialize Jupiter executor.

        Args:
            base_url: Jupiter API base URL
            max_slippage_bps: Maximum slippage tolerance in basis points
            signer: Transaction signer holding the wallet keypair
            sender: RPC sender used for submission and confirmation
            session: Shared httpx client
            priority_fee_microlamports: Compute unit price for the swap
            timeout: Per-request timeout for Jupiter calls
            confirm_timeout: Maximum wait for on-chain confirmation
        """
        self.base_url = base_url.rstrip("/")
        self.max_slippage_bps = max_slippage_bps
        self.signer = signer
        self.sender = sender
        self.session = session
        self.priority_fee_microlamports = priority_fee_microlamports
        self.timeout = timeout
        self.confirm_timeout = confirm_timeout

    async def _get_routes(
        self, input_mint: str, output_mint: str, amount: int
    ) -> list[Route]:
        params = build_quote_params(
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            slippage_bps=self.max_slippage_bps,
        )

        logger.info(
            "Requesting Jupiter quote",
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            slippage_bps=self.max_slippage_bps,
        )

        quote_response = await get_json(
            self.session, f"{self.base_url}/quote", params=params, timeout=self.timeout
        )
        return extract_routes(quote_response)

    async def _build_swap_transaction(self, route: Route) -> bytes:
        """Ask Jupiter to serialize the swap for the chosen route."""
        swap_request = {
            "quoteResponse": route.raw,
            "userPublicKey": self.signer.pubkey_base58(),
            "wrapAndUnwrapSol": True,
            "computeUnitPriceMicroLamports": self.priority_fee_microlamports,
        }

        response = await self.session.post(
            f"{self.base_url}/swap", json=swap_request, timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected swap response type: {type(body).__name__}")
        swap_transaction = body.get("swapTransaction")
        if not swap_transaction:
            raise ValueError("Swap response carried no transaction")
        return base64.b64decode(swap_transaction, validate=True)

    async def _quote(self, input_mint: str, output_mint: str, amount: int) -> Route:
        try:
            routes = await self._get_routes(input_mint, output_mint, amount)
        except NetworkError as e:
            raise RouteError(f"Quote request failed: {e}", context=e.context) from e
        return select_best_route(routes)

    async def _submit(self, route: Route) -> str:
        try:
            unsigned = await self._build_swap_transaction(route)
            signed = self.signer.sign_transaction(unsigned)
            signature = await self.sender.send(base64.b64encode(signed).decode("ascii"))
            await self.sender.confirm_signature(
                signature, commitment="confirmed", timeout=self.confirm_timeout
            )
        except Exception as e:
            raise SubmissionError(
                f"Swap submission failed: {e}",
                context={"error_type": type(e).__name__},
            ) from e
        return signature

    async def swap(self, input_mint: str, output_mint: str, amount: int) -> SwapResult:
        """Execute a swap on the best available route.

        Args:
            input_mint: Mint being sold
            output_mint: Mint being bought
            amount: Input amount in smallest units

        Returns:
            SwapResult with the confirmed signature, expected and minimum output

        Raises:
            RouteError: If no route could be quoted
            SubmissionError: If the transaction failed to land
        """
        try:
            route = await self._quote(input_mint, output_mint, amount)
            tx_id = await self._submit(route)
        except (RouteError, SubmissionError) as e:
            logger.error(
                "Swap error",
                input_mint=input_mint,
                output_mint=output_mint,
                amount=amount,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        logger.info(
            "Swap confirmed",
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            out_amount=route.out_amount,
            min_out_amount=route.min_out_amount,
            tx_id=tx_id,
        )
        return SwapResult(
            tx_id=tx_id,
            out_amount=route.out_amount,
            min_out_amount=route.min_out_amount,
        )
