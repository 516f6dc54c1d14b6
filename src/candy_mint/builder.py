"""Assemble the instruction sequence for a single candy machine mint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from solders.compute_budget import set_compute_unit_limit
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from .errors import UnsupportedGuard
from .logging_config import get_logger
from .models import GuardConfig, GuardKind, MachineSnapshot
from .programs import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    CANDY_GUARD_PROGRAM_ID,
    CANDY_MACHINE_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_INSTRUCTIONS_ID,
    SYSVAR_SLOT_HASHES_ID,
    TOKEN_METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    candy_machine_authority_pda,
    collection_delegate_record_pda,
    instruction_discriminator,
    master_edition_pda,
    metadata_pda,
    token_record_pda,
)

logger = get_logger(__name__)

DEFAULT_COMPUTE_UNIT_LIMIT = 600_000
MINT_V2_DISCRIMINATOR = instruction_discriminator("mint_v2")

# Guards the program evaluates without any client-supplied arguments.
ARGUMENTLESS_GUARDS = frozenset(
    {
        GuardKind.BOT_TAX,
        GuardKind.START_DATE,
        GuardKind.END_DATE,
        GuardKind.REDEEMED_AMOUNT,
        GuardKind.ADDRESS_GATE,
    }
)
SUPPORTED_GUARDS = ARGUMENTLESS_GUARDS | {GuardKind.SOL_PAYMENT}


@dataclass
class MintArgs:
    """Serialized guard arguments plus the extra accounts the guards read."""

    data: bytes = b""
    remaining_accounts: list[AccountMeta] = field(default_factory=list)

    def serialize(self) -> bytes:
        # Vec<u8> mint args followed by a None group label
        return len(self.data).to_bytes(4, "little") + self.data + b"\x00"


def mint_args(guard: Optional[GuardConfig]) -> MintArgs:
    """Collect the arguments each enabled guard needs at mint time.

    The sol payment guard forwards only its destination; the amount stays in
    the guard's on-chain configuration.
    """

    args = MintArgs()
    if guard is None:
        return args

    unsupported = guard.enabled - SUPPORTED_GUARDS
    if unsupported:
        raise UnsupportedGuard(kind.value for kind in unsupported)

    if GuardKind.SOL_PAYMENT in guard.enabled:
        if guard.sol_payment is None:
            raise UnsupportedGuard([GuardKind.SOL_PAYMENT.value])
        args.remaining_accounts.append(
            AccountMeta(guard.sol_payment.destination, is_signer=False, is_writable=True)
        )
    return args


def _meta(pubkey: Pubkey, signer: bool = False, writable: bool = False) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=signer, is_writable=writable)


class MintTransactionBuilder:
    """Build ``[compute unit limit, mint_v2]`` for one asset."""

    def __init__(self, compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT) -> None:
        self.compute_unit_limit = compute_unit_limit

    def build(
        self,
        snapshot: MachineSnapshot,
        guard: Optional[GuardConfig],
        asset: Pubkey,
        minter: Pubkey,
    ) -> list[Instruction]:
        """Return the ordered instructions minting ``asset`` to ``minter``.

        Raises ``UnsupportedGuard`` before producing anything when the guard
        set needs arguments this builder cannot assemble.
        """

        args = mint_args(guard)
        if guard is None:
            mint_ix = self._core_mint(snapshot, asset, minter)
        else:
            mint_ix = self._guarded_mint(snapshot, guard, asset, minter, args)
        logger.debug(
            "Built mint for asset %s on machine %s (%d accounts)",
            asset,
            snapshot.address,
            len(mint_ix.accounts),
        )
        return [set_compute_unit_limit(self.compute_unit_limit), mint_ix]

    def _nft_accounts(
        self, snapshot: MachineSnapshot, asset: Pubkey, minter: Pubkey, placeholder: Pubkey
    ) -> list[AccountMeta]:
        """Asset, collection and program accounts shared by both mint_v2 variants."""

        authority_pda = candy_machine_authority_pda(snapshot.address)
        token = get_associated_token_address(minter, asset)
        if snapshot.token_standard.programmable:
            token_record = _meta(token_record_pda(asset, token), writable=True)
        else:
            token_record = _meta(placeholder)
        collection = snapshot.collection_mint
        return [
            _meta(asset, signer=True, writable=True),
            _meta(minter, signer=True),
            _meta(metadata_pda(asset), writable=True),
            _meta(master_edition_pda(asset), writable=True),
            _meta(token, writable=True),
            token_record,
            _meta(collection_delegate_record_pda(collection, snapshot.authority, authority_pda)),
            _meta(collection),
            _meta(metadata_pda(collection), writable=True),
            _meta(master_edition_pda(collection)),
            _meta(snapshot.authority),
            _meta(TOKEN_METADATA_PROGRAM_ID),
            _meta(TOKEN_PROGRAM_ID),
            _meta(ASSOCIATED_TOKEN_PROGRAM_ID),
            _meta(SYSTEM_PROGRAM_ID),
            _meta(SYSVAR_INSTRUCTIONS_ID),
            _meta(SYSVAR_SLOT_HASHES_ID),
            # authorization rules program and rule set are not used
            _meta(placeholder),
            _meta(placeholder),
        ]

    def _guarded_mint(
        self,
        snapshot: MachineSnapshot,
        guard: GuardConfig,
        asset: Pubkey,
        minter: Pubkey,
        args: MintArgs,
    ) -> Instruction:
        accounts = [
            _meta(guard.address),
            _meta(CANDY_MACHINE_PROGRAM_ID),
            _meta(snapshot.address, writable=True),
            _meta(candy_machine_authority_pda(snapshot.address), writable=True),
            _meta(minter, signer=True, writable=True),  # payer
            _meta(minter, signer=True, writable=True),  # minter
        ]
        accounts += self._nft_accounts(snapshot, asset, minter, CANDY_GUARD_PROGRAM_ID)
        accounts += args.remaining_accounts
        return Instruction(
            CANDY_GUARD_PROGRAM_ID, MINT_V2_DISCRIMINATOR + args.serialize(), accounts
        )

    def _core_mint(self, snapshot: MachineSnapshot, asset: Pubkey, minter: Pubkey) -> Instruction:
        """Unguarded mint; only the machine's mint authority can sign it."""

        accounts = [
            _meta(snapshot.address, writable=True),
            _meta(candy_machine_authority_pda(snapshot.address), writable=True),
            _meta(snapshot.mint_authority, signer=True),
            _meta(minter, signer=True, writable=True),  # payer
            _meta(minter),  # owner
        ]
        accounts += self._nft_accounts(snapshot, asset, minter, CANDY_MACHINE_PROGRAM_ID)
        return Instruction(CANDY_MACHINE_PROGRAM_ID, MINT_V2_DISCRIMINATOR, accounts)
