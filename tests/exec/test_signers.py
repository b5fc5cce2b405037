"""Tests for wallet loading and signing."""

import base58
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from autopilot.core.errors import ConfigError
from autopilot.exec.signers import KeypairSigner, load_secret_from_string


@pytest.fixture
def keypair():
    return Keypair()


def unsigned_transfer(payer: Keypair) -> VersionedTransaction:
    """Build a transaction shaped like a swap API response: signature slots empty."""
    ix = transfer(
        TransferParams(
            from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1_000
        )
    )
    message = MessageV0.try_compile(payer.pubkey(), [ix], [], Hash.default())
    return VersionedTransaction.populate(message, [Signature.default()])


class TestLoadSecret:
    """Test secret key decoding."""

    def test_hex(self, keypair):
        secret = bytes(keypair)

        assert load_secret_from_string(secret.hex()) == secret

    def test_base58(self, keypair):
        """Test the wallet export format most tools produce."""
        secret = bytes(keypair)

        assert load_secret_from_string(base58.b58encode(secret).decode()) == secret

    def test_surrounding_whitespace_ignored(self, keypair):
        secret = bytes(keypair)

        assert load_secret_from_string(f"  {secret.hex()}\n") == secret

    def test_wrong_length(self):
        with pytest.raises(ValueError, match="length"):
            load_secret_from_string("ab" * 32)

    def test_garbage(self):
        with pytest.raises(ValueError):
            load_secret_from_string("not a key 0OIl")


class TestKeypairSigner:
    """Test the in-memory signer."""

    def test_from_secret_restores_pubkey(self, keypair):
        signer = KeypairSigner.from_secret(bytes(keypair).hex())

        assert signer.pubkey_base58() == str(keypair.pubkey())

    def test_from_secret_invalid_is_config_error(self):
        """Test that a bad wallet secret fails as configuration."""
        with pytest.raises(ConfigError):
            KeypairSigner.from_secret("deadbeef")

    def test_sign_transaction(self, keypair):
        """Test that signing fills the fee payer signature and keeps the message."""
        unsigned = unsigned_transfer(keypair)
        signer = KeypairSigner(keypair)

        signed = VersionedTransaction.from_bytes(
            signer.sign_transaction(bytes(unsigned))
        )

        assert signed.signatures[0] != Signature.default()
        assert bytes(signed.message) == bytes(unsigned.message)
