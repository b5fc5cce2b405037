"""Wallet keypair loading and transaction signing."""

import base58
import structlog
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from ..core.errors import ConfigError

logger = structlog.get_logger(__name__)


def load_secret_from_string(secret_str: str) -> bytes:
    """Decode a 64-byte secret key given as hex or base58.

    Args:
        secret_str: Hex (128 chars) or base58 encoded secret key

    Returns:
        64-byte secret key

    Raises:
        ValueError: If the string decodes to anything but 64 bytes
    """
    secret_str = secret_str.strip()
    try:
        secret_bytes = bytes.fromhex(secret_str)
    except ValueError:
        try:
            secret_bytes = base58.b58decode(secret_str)
        except ValueError as e:
            raise ValueError(f"Secret key is neither hex nor base58: {e}") from e

    if len(secret_bytes) != 64:
        raise ValueError(
            f"Invalid secret key length: {len(secret_bytes)} bytes (expected 64)"
        )
    return secret_bytes


class KeypairSigner:
    """Signer backed by an in-memory Solana keypair."""

    def __init__(self, keypair: Keypair) -> None:
        self.keypair = keypair
        logger.info("KeypairSigner initialized", pubkey=self.pubkey_base58())

    @classmethod
    def from_secret(cls, secret_str: str) -> "KeypairSigner":
        """Build a signer from hex or base58 secret material.

        Raises:
            ConfigError: If the secret cannot be decoded
        """
        try:
            return cls(Keypair.from_bytes(load_secret_from_string(secret_str)))
        except ValueError as e:
            raise ConfigError(f"Invalid wallet secret key: {e}") from e

    def pubkey_base58(self) -> str:
        """Get the public key in base58 format."""
        return str(self.keypair.pubkey())

    def sign_transaction(self, txn_bytes: bytes) -> bytes:
        """Sign a serialized versioned transaction.

        Args:
            txn_bytes: Unsigned transaction as returned by the swap API

        Returns:
            Fully signed transaction bytes ready for RPC submission
        """
        unsigned = VersionedTransaction.from_bytes(txn_bytes)
        signed = VersionedTransaction(unsigned.message, [self.keypair])
        return bytes(signed)
