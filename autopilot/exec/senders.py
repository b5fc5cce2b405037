"""Solana JSON-RPC client: balance reads, transaction submission, confirmation."""

import asyncio
import itertools
import time
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.interfaces import BalanceSource

logger = structlog.get_logger(__name__)

COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

# Internal error, node unhealthy, slot skipped, rate limited
TRANSIENT_RPC_CODES = frozenset({-32603, -32005, -32004, 429})


class SolanaRpcError(Exception):
    """Error object carried in a JSON-RPC response."""

    def __init__(self, code: int, message: str, data: dict | None = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC Error {code}: {message}")


def _is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    return isinstance(exc, SolanaRpcError) and exc.code in TRANSIENT_RPC_CODES


def _has_reached(status: dict[str, Any], commitment: str) -> bool:
    level = status.get("confirmationStatus")
    if level not in COMMITMENT_LEVELS:
        return False
    return COMMITMENT_LEVELS.index(level) >= COMMITMENT_LEVELS.index(commitment)


_retry_reads = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_retryable_error),
    reraise=True,
)


class RpcClient(BalanceSource):
    """JSON-RPC client for the trading wallet.

    Reads retry on transient failures. Submission is a single attempt and
    leaves the decision about a failed send to the caller.
    """

    def __init__(
        self,
        rpc_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Solana RPC endpoint URL
            client: Shared httpx client; a private one is created if omitted
            timeout: Per-request timeout in seconds
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._request_ids = itertools.count(1)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC request and unwrap its result.

        Raises:
            SolanaRpcError: If the node answered with an error object
            httpx.HTTPError: On transport failures and non-2xx statuses
        """
        request_id = next(self._request_ids)
        started = time.monotonic()
        try:
            response = await self._client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "RPC transport error",
                method=method,
                request_id=request_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        body = response.json()
        logger.debug(
            "RPC call finished",
            method=method,
            request_id=request_id,
            elapsed=time.monotonic() - started,
        )

        error = body.get("error")
        if error:
            raise SolanaRpcError(
                code=error.get("code", -1),
                message=error.get("message", "Unknown RPC error"),
                data=error.get("data"),
            )
        return body.get("result")

    @_retry_reads
    async def _read(self, method: str, params: list[Any]) -> Any:
        return await self._call(method, params)

    async def get_balance(self, pubkey: str) -> int:
        """Return the confirmed balance of `pubkey` in lamports."""
        result = await self._read("getBalance", [pubkey, {"commitment": "confirmed"}])
        return int(result["value"])

    async def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        """Return the status of a signature, or None while the node has not seen it."""
        result = await self._read(
            "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}]
        )
        statuses = (result or {}).get("value") or []
        return statuses[0] if statuses else None

    async def send(self, tx_base64: str, skip_preflight: bool = False) -> str:
        """Submit a signed, base64-encoded transaction once.

        Returns:
            The transaction signature
        """
        signature = await self._call(
            "sendTransaction",
            [
                tx_base64,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": "processed",
                },
            ],
        )
        logger.info("Transaction submitted", signature=signature)
        return signature

    async def confirm_signature(
        self,
        signature: str,
        commitment: str = "confirmed",
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]:
        """Poll until `signature` reaches `commitment`.

        Args:
            signature: Transaction signature
            commitment: One of processed, confirmed, finalized
            timeout: Seconds before giving up
            poll_interval: Seconds between status reads

        Returns:
            The final signature status

        Raises:
            SolanaRpcError: If the transaction executed with an error
            TimeoutError: If the commitment was not reached in time
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                status = await self.get_signature_status(signature)
            except (httpx.HTTPError, SolanaRpcError) as e:
                logger.warning("Signature status unavailable", signature=signature, error=str(e))
                status = None

            if status is not None:
                if status.get("err") is not None:
                    logger.error("Transaction failed on chain", signature=signature, err=status["err"])
                    raise SolanaRpcError(-1, f"Transaction failed: {status['err']}")
                if _has_reached(status, commitment):
                    logger.info(
                        "Transaction confirmed",
                        signature=signature,
                        commitment=status.get("confirmationStatus"),
                        slot=status.get("slot"),
                    )
                    return status

            await asyncio.sleep(poll_interval)

        logger.error("Transaction not confirmed in time", signature=signature, timeout=timeout)
        raise TimeoutError(f"Transaction not {commitment} after {timeout}s: {signature}")
