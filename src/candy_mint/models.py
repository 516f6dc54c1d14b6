"""Snapshots and status records shared by the mint components."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature


class TokenStandard(int, Enum):
    """Token standard minted by a candy machine (account byte values)."""

    NON_FUNGIBLE = 0
    FUNGIBLE_ASSET = 1
    FUNGIBLE = 2
    NON_FUNGIBLE_EDITION = 3
    PROGRAMMABLE_NON_FUNGIBLE = 4

    @property
    def programmable(self) -> bool:
        return self is TokenStandard.PROGRAMMABLE_NON_FUNGIBLE


class GuardKind(str, Enum):
    """Guards a candy guard can enable, in feature-bit order.

    ``UNKNOWN`` covers bits this client does not recognise.
    """

    BOT_TAX = "botTax"
    SOL_PAYMENT = "solPayment"
    TOKEN_PAYMENT = "tokenPayment"
    START_DATE = "startDate"
    THIRD_PARTY_SIGNER = "thirdPartySigner"
    TOKEN_GATE = "tokenGate"
    GATEKEEPER = "gatekeeper"
    END_DATE = "endDate"
    ALLOW_LIST = "allowList"
    MINT_LIMIT = "mintLimit"
    NFT_PAYMENT = "nftPayment"
    REDEEMED_AMOUNT = "redeemedAmount"
    ADDRESS_GATE = "addressGate"
    NFT_GATE = "nftGate"
    NFT_BURN = "nftBurn"
    TOKEN_BURN = "tokenBurn"
    FREEZE_SOL_PAYMENT = "freezeSolPayment"
    FREEZE_TOKEN_PAYMENT = "freezeTokenPayment"
    PROGRAM_GATE = "programGate"
    ALLOCATION = "allocation"
    TOKEN2022_PAYMENT = "token2022Payment"
    UNKNOWN = "unknown"


# Index in this tuple is the feature bit set on-chain for the guard.
GUARD_FEATURE_ORDER: tuple[GuardKind, ...] = tuple(
    kind for kind in GuardKind if kind is not GuardKind.UNKNOWN
)


@dataclass(frozen=True)
class MachineSnapshot:
    """Supply counters and collection wiring read from a candy machine account."""

    address: Pubkey
    authority: Pubkey
    mint_authority: Pubkey
    collection_mint: Pubkey
    items_loaded: int
    items_redeemed: int
    items_available: int = 0
    token_standard: TokenStandard = TokenStandard.NON_FUNGIBLE


@dataclass(frozen=True)
class SolPayment:
    lamports: int
    destination: Pubkey


@dataclass(frozen=True)
class GuardConfig:
    """Default guard set of a candy guard account."""

    address: Pubkey
    base: Pubkey
    authority: Pubkey
    enabled: frozenset[GuardKind] = frozenset()
    sol_payment: Optional[SolPayment] = None


@dataclass(frozen=True)
class EligibilityState:
    remaining: int
    cost_in_sol: Decimal
    mint_enabled: bool
    blocking_reason: Optional[str] = None


class AttemptStatus(str, Enum):
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class MintAttempt:
    """One user-initiated mint; the asset keypair is never reused."""

    asset: Keypair = field(default_factory=Keypair)
    status: AttemptStatus = AttemptStatus.BUILDING
    signature: Optional[Signature] = None
    error: Optional[str] = None

    @property
    def asset_address(self) -> Pubkey:
        return self.asset.pubkey()


class MintState(str, Enum):
    IDLE = "idle"
    LOADING_AVAILABILITY = "loading"
    DISABLED = "disabled"
    READY = "ready"
    MINTING = "minting"
    MINTED = "minted"
    FAILED = "failed"


@dataclass
class MintStatus:
    """Read-only view handed to the presentation layer."""

    state: MintState = MintState.IDLE
    count_total: Optional[int] = None
    count_minted: Optional[int] = None
    count_remaining: Optional[int] = None
    cost_in_sol: Decimal = Decimal(0)
    blocking_reason: Optional[str] = None
    mint_disabled: bool = True
    loading: bool = False
    message: Optional[str] = None
    last_asset: Optional[str] = None
    last_signature: Optional[str] = None
    explorer_url: Optional[str] = None

    def status_line(self) -> str:
        if self.count_total is None:
            return f"{self.state.value.capitalize()} · No machine loaded"
        counts = f"Minted: {self.count_minted} / {self.count_total} · Remaining: {self.count_remaining}"
        return f"{self.state.value.capitalize()} · {counts} · {self.cost_in_sol} SOL"
