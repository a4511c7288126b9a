"""Transaction signing with a local Solana keypair.

``solders`` is only needed when trading live, so it is imported lazily and
declared as an optional dependency.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from swapcore.errors import ExecutionErrorKind, ExecutionFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedTransaction:
    """Serialized signed transaction and its signature."""
    raw: bytes
    signature: str


class Signer(Protocol):
    """Anything that can sign a serialized unsigned transaction."""

    @property
    def public_key(self) -> str: ...

    def sign(self, transaction: bytes) -> SignedTransaction: ...


class KeypairSigner:
    """Signs Jupiter swap transactions with a base58-encoded secret key."""

    def __init__(self, secret_key: str):
        try:
            from solders.keypair import Keypair
        except ImportError as e:
            raise ExecutionFailure(
                ExecutionErrorKind.WALLET, "solders is not installed; install the 'live' extra",
            ) from e

        try:
            self._keypair = Keypair.from_base58_string(secret_key)
        except ValueError as e:
            raise ExecutionFailure(ExecutionErrorKind.WALLET, "invalid wallet secret key") from e

        logger.info(f"Using wallet {self.public_key}")

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign(self, transaction: bytes) -> SignedTransaction:
        """Deserialize, sign and re-serialize a versioned transaction."""
        from solders.transaction import VersionedTransaction

        try:
            unsigned = VersionedTransaction.from_bytes(transaction)
            signed = VersionedTransaction(unsigned.message, [self._keypair])
        except ValueError as e:
            raise ExecutionFailure(ExecutionErrorKind.WALLET, f"failed to sign transaction: {e}") from e

        return SignedTransaction(raw=bytes(signed), signature=str(signed.signatures[0]))
