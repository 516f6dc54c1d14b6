"""Read candy machine, candy guard and wallet balance state from the RPC endpoint."""

from __future__ import annotations

from typing import Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from .errors import FetchError, MachineNotFound
from .logging_config import get_logger
from .models import (
    GUARD_FEATURE_ORDER,
    GuardConfig,
    GuardKind,
    MachineSnapshot,
    SolPayment,
    TokenStandard,
)
from .programs import (
    CANDY_GUARD_PROGRAM_ID,
    CANDY_MACHINE_PROGRAM_ID,
    account_discriminator,
)

logger = get_logger(__name__)

CANDY_MACHINE_DISCRIMINATOR = account_discriminator("CandyMachine")
CANDY_GUARD_DISCRIMINATOR = account_discriminator("CandyGuard")

# Fixed-size prefix of a candy machine account; the loaded item count sits right after it.
HIDDEN_SECTION = 850
CREATOR_SIZE = 34
# discriminator + base + bump + authority
GUARD_DATA_OFFSET = 8 + 32 + 1 + 32
BOT_TAX_SIZE = 9


class _Cursor:
    """Sequential little-endian reader over Borsh-encoded account data."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = data
        self.offset = offset

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ValueError(f"account data truncated at offset {self.offset}")
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), "little")

    def u32(self) -> int:
        return int.from_bytes(self.take(4), "little")

    def u64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    def pubkey(self) -> Pubkey:
        return Pubkey.from_bytes(self.take(32))

    def string(self) -> str:
        return self.take(self.u32()).decode("utf-8", errors="replace")

    def skip(self, size: int) -> None:
        self.take(size)


def decode_candy_machine(address: Pubkey, data: bytes) -> MachineSnapshot:
    """Decode a Candy Machine Core account into a snapshot."""

    if data[:8] != CANDY_MACHINE_DISCRIMINATOR:
        raise ValueError("not a candy machine account")
    cursor = _Cursor(data, 8)
    cursor.u8()  # account version
    token_standard = TokenStandard(cursor.u8())
    cursor.skip(6)  # feature flags
    authority = cursor.pubkey()
    mint_authority = cursor.pubkey()
    collection_mint = cursor.pubkey()
    items_redeemed = cursor.u64()

    items_available = cursor.u64()
    cursor.string()  # symbol
    cursor.u16()  # seller fee basis points
    cursor.u64()  # max supply
    cursor.u8()  # is mutable
    cursor.skip(cursor.u32() * CREATOR_SIZE)
    if cursor.u8():
        # config line settings
        cursor.string()
        cursor.u32()
        cursor.string()
        cursor.u32()
        cursor.u8()
    hidden_settings = bool(cursor.u8())

    if hidden_settings:
        items_loaded = items_available
    else:
        items_loaded = _Cursor(data, HIDDEN_SECTION).u32()

    return MachineSnapshot(
        address=address,
        authority=authority,
        mint_authority=mint_authority,
        collection_mint=collection_mint,
        items_loaded=items_loaded,
        items_redeemed=items_redeemed,
        items_available=items_available,
        token_standard=token_standard,
    )


def decode_candy_guard(address: Pubkey, data: bytes) -> GuardConfig:
    """Decode the header and default guard set of a Candy Guard account.

    Only the sol payment guard body is decoded; other enabled guards are
    reported by kind so the builder can decide whether it supports them.
    """

    if data[:8] != CANDY_GUARD_DISCRIMINATOR:
        raise ValueError("not a candy guard account")
    cursor = _Cursor(data, 8)
    base = cursor.pubkey()
    cursor.u8()  # bump
    authority = cursor.pubkey()

    cursor = _Cursor(data, GUARD_DATA_OFFSET)
    features = cursor.u64()
    enabled: set[GuardKind] = set()
    for bit in range(64):
        if not features & (1 << bit):
            continue
        if bit < len(GUARD_FEATURE_ORDER):
            enabled.add(GUARD_FEATURE_ORDER[bit])
        else:
            enabled.add(GuardKind.UNKNOWN)

    sol_payment = None
    if GuardKind.BOT_TAX in enabled:
        cursor.skip(BOT_TAX_SIZE)
    if GuardKind.SOL_PAYMENT in enabled:
        lamports = cursor.u64()
        destination = cursor.pubkey()
        sol_payment = SolPayment(lamports=lamports, destination=destination)

    return GuardConfig(
        address=address,
        base=base,
        authority=authority,
        enabled=frozenset(enabled),
        sol_payment=sol_payment,
    )


class RemoteStateReader:
    """Pure reads against the ledger; never sends transactions."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def fetch_machine_snapshot(self, machine_address: Pubkey) -> MachineSnapshot:
        account = await self._account(machine_address)
        if account is None or account.owner != CANDY_MACHINE_PROGRAM_ID:
            raise MachineNotFound(str(machine_address))
        try:
            snapshot = decode_candy_machine(machine_address, bytes(account.data))
        except ValueError as exc:
            if bytes(account.data)[:8] != CANDY_MACHINE_DISCRIMINATOR:
                raise MachineNotFound(str(machine_address)) from exc
            raise FetchError(
                f"Could not decode candy machine account: {exc}",
                {"address": str(machine_address)},
            ) from exc
        logger.debug(
            "Machine %s: %d/%d redeemed",
            machine_address,
            snapshot.items_redeemed,
            snapshot.items_loaded,
        )
        return snapshot

    async def fetch_guard_config(self, guard_authority: Pubkey) -> Optional[GuardConfig]:
        """Return the candy guard at ``guard_authority`` or None for an ungated machine."""

        account = await self._account(guard_authority)
        if account is None or account.owner != CANDY_GUARD_PROGRAM_ID:
            logger.debug("No candy guard at %s", guard_authority)
            return None
        data = bytes(account.data)
        if data[:8] != CANDY_GUARD_DISCRIMINATOR:
            return None
        try:
            guard = decode_candy_guard(guard_authority, data)
        except ValueError as exc:
            raise FetchError(
                f"Could not decode candy guard account: {exc}",
                {"address": str(guard_authority)},
            ) from exc
        logger.debug(
            "Guard %s enables %s",
            guard_authority,
            sorted(kind.value for kind in guard.enabled),
        )
        return guard

    async def fetch_balance(self, owner: Pubkey) -> int:
        """Return the lamport balance of ``owner``."""

        try:
            response = await self.client.get_balance(owner)
        except (SolanaRpcException, RPCException) as exc:
            raise FetchError(f"Balance lookup failed: {exc}", {"owner": str(owner)}) from exc
        return response.value

    async def _account(self, address: Pubkey):
        try:
            response = await self.client.get_account_info(address)
        except (SolanaRpcException, RPCException) as exc:
            raise FetchError(
                f"Account lookup failed: {exc}", {"address": str(address)}
            ) from exc
        return response.value
