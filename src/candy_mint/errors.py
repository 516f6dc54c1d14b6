"""Exceptions raised while reading, building and submitting candy machine mints.

Exception Hierarchy:
    CandyMintError (base)
    ├── ConfigError           - missing or invalid configuration (fatal to the session)
    ├── FetchError            - remote account read failed (recoverable by refreshing)
    │   └── MachineNotFound   - machine address does not resolve on the ledger
    ├── UnsupportedGuard      - guard set needs arguments the builder cannot assemble
    ├── WalletNotConnected    - no signer is available
    └── MintFailed            - submission or confirmation failed
        ├── UserRejected        - signer declined the transaction
        ├── NetworkError        - transport failure while sending or polling
        ├── OnChainRejection    - program declined the transaction
        └── ConfirmationTimeout - finalized status not observed in time

Insufficient funds is not an exception; it is reported through
``EligibilityState.blocking_reason``.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class CandyMintError(Exception):
    """Base exception for every candy_mint failure."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(CandyMintError):
    """Configuration is missing or malformed."""


class FetchError(CandyMintError):
    """Reading machine, guard or balance state from the RPC endpoint failed."""


class MachineNotFound(FetchError):
    """The configured address is not a candy machine account."""

    def __init__(self, address: str) -> None:
        super().__init__(
            f"Candy machine not found at {address}",
            {"address": address},
        )
        self.address = address


class UnsupportedGuard(CandyMintError):
    """The guard set enables guards whose mint arguments cannot be assembled."""

    def __init__(self, guard_kinds: Iterable[str]) -> None:
        kinds = sorted(guard_kinds)
        super().__init__(
            f"Unsupported guard(s) on this candy machine: {', '.join(kinds)}",
            {"guards": kinds},
        )
        self.guard_kinds = kinds


class WalletNotConnected(CandyMintError):
    """A signer is required but no wallet is connected."""

    def __init__(self) -> None:
        super().__init__("Please connect your wallet.")


class MintFailed(CandyMintError):
    """Base class for failures while submitting or confirming a mint."""


class UserRejected(MintFailed):
    """The wallet declined to sign the transaction.

    Wallet implementations raise this from ``sign_message`` when the user
    cancels the request.
    """

    def __init__(self, message: str = "Transaction was rejected by the wallet.") -> None:
        super().__init__(message)


class NetworkError(MintFailed):
    """Sending the transaction or querying its status failed in transport."""


class OnChainRejection(MintFailed):
    """The program declined the transaction."""

    def __init__(self, signature: str, error: str) -> None:
        super().__init__(
            f"Transaction failed on-chain: {error}",
            {"signature": signature},
        )
        self.signature = signature
        self.error = error


class ConfirmationTimeout(MintFailed):
    """Finalized status was not observed before the configured ceiling."""

    def __init__(self, signature: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transaction {signature} was not finalized within {timeout_seconds:g}s; "
            "it may still land, check the explorer before minting again.",
            {"signature": signature},
        )
        self.signature = signature
        self.timeout_seconds = timeout_seconds
