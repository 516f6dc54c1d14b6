"""Shared fixtures: an in-memory RPC endpoint serving encoded candy machine accounts."""

from __future__ import annotations

import asyncio
from collections import deque
from types import SimpleNamespace
from typing import Optional

import pytest
from solana.exceptions import SolanaRpcException
from solana.rpc.commitment import Confirmed
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from candy_mint.config import Settings
from candy_mint.eligibility import LAMPORTS_PER_SOL
from candy_mint.programs import CANDY_GUARD_PROGRAM_ID, CANDY_MACHINE_PROGRAM_ID
from candy_mint.reader import (
    CANDY_GUARD_DISCRIMINATOR,
    CANDY_MACHINE_DISCRIMINATOR,
    HIDDEN_SECTION,
)

FINALIZED = TransactionConfirmationStatus.Finalized
CONFIRMED = TransactionConfirmationStatus.Confirmed


def _string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return len(raw).to_bytes(4, "little") + raw


def encode_candy_machine(
    authority: Pubkey,
    mint_authority: Pubkey,
    collection_mint: Pubkey,
    items_available: int,
    items_redeemed: int,
    items_loaded: Optional[int] = None,
    token_standard: int = 4,
    hidden_settings: bool = False,
) -> bytes:
    data = bytearray(CANDY_MACHINE_DISCRIMINATOR)
    data += bytes([2, token_standard]) + bytes(6)
    data += bytes(authority) + bytes(mint_authority) + bytes(collection_mint)
    data += items_redeemed.to_bytes(8, "little")
    data += items_available.to_bytes(8, "little")
    data += _string("TKT")
    data += (500).to_bytes(2, "little")
    data += (0).to_bytes(8, "little")
    data += b"\x01"
    data += (1).to_bytes(4, "little") + bytes(authority) + b"\x01" + bytes([100])
    if hidden_settings:
        data += b"\x00" + b"\x01" + _string("Ticket") + _string("https://example.com/t.json") + bytes(32)
    else:
        data += b"\x01"
        data += _string("Ticket #") + (4).to_bytes(4, "little")
        data += _string("https://arweave.net/") + (43).to_bytes(4, "little")
        data += b"\x00"
        data += b"\x00"
    data = data.ljust(HIDDEN_SECTION, b"\x00")
    loaded = items_available if items_loaded is None else items_loaded
    data += loaded.to_bytes(4, "little") + bytes(64)
    return bytes(data)


def encode_candy_guard(
    base: Pubkey,
    authority: Pubkey,
    sol_payment: Optional[tuple[int, Pubkey]] = None,
    bot_tax: bool = False,
    extra_bits: tuple[int, ...] = (),
) -> bytes:
    features = 0
    body = b""
    if bot_tax:
        features |= 1
        body += (10_000_000).to_bytes(8, "little") + b"\x01"
    if sol_payment is not None:
        features |= 1 << 1
        lamports, destination = sol_payment
        body += lamports.to_bytes(8, "little") + bytes(destination)
    for bit in extra_bits:
        features |= 1 << bit
    header = CANDY_GUARD_DISCRIMINATOR + bytes(base) + b"\xfe" + bytes(authority)
    return header + features.to_bytes(8, "little") + body + bytes(16)


def account(owner: Pubkey, data: bytes) -> SimpleNamespace:
    return SimpleNamespace(owner=owner, data=data, lamports=1_000_000)


def status(confirmation=FINALIZED, err=None) -> SimpleNamespace:
    return SimpleNamespace(confirmation_status=confirmation, err=err, slot=1)


def transport_error(message: str) -> SolanaRpcException:
    """A failed HTTP round trip, shaped the way solana-py's provider wraps it."""

    return SolanaRpcException(OSError(message), FakeRpcClient._call, None, SimpleNamespace())


class FakeRpcClient:
    """Async stand-in for ``AsyncClient`` covering the calls the mint flow makes.

    Every call yields to the event loop once, like a real network round trip.
    """

    def __init__(self) -> None:
        self.accounts: dict[Pubkey, SimpleNamespace] = {}
        self.balances: dict[Pubkey, int] = {}
        self.statuses: deque = deque()
        self.sent: list[tuple[VersionedTransaction, object]] = []
        self.logs: Optional[list[str]] = None
        # logs of a failed transaction are visible at this commitment, not yet at finalized
        self.log_commitment = Confirmed
        self.transaction_commitments: list = []
        self.fail_on: dict[str, Exception] = {}
        self.send_gate: Optional[asyncio.Event] = None
        self.calls: list[str] = []

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        await asyncio.sleep(0)
        if name in self.fail_on:
            raise self.fail_on[name]

    async def get_account_info(self, pubkey, *args, **kwargs):
        await self._call("get_account_info")
        return SimpleNamespace(value=self.accounts.get(pubkey))

    async def get_balance(self, pubkey, *args, **kwargs):
        await self._call("get_balance")
        return SimpleNamespace(value=self.balances.get(pubkey, 0))

    async def get_latest_blockhash(self, *args, **kwargs):
        await self._call("get_latest_blockhash")
        return SimpleNamespace(
            value=SimpleNamespace(blockhash=Hash.default(), last_valid_block_height=200)
        )

    async def send_raw_transaction(self, raw: bytes, opts=None):
        await self._call("send_raw_transaction")
        if self.send_gate is not None:
            await self.send_gate.wait()
        transaction = VersionedTransaction.from_bytes(raw)
        self.sent.append((transaction, opts))
        return SimpleNamespace(value=transaction.signatures[0])

    async def get_signature_statuses(self, signatures, *args, **kwargs):
        await self._call("get_signature_statuses")
        current = self.statuses.popleft() if self.statuses else status()
        return SimpleNamespace(value=[current])

    async def get_transaction(self, signature: Signature, *args, **kwargs):
        await self._call("get_transaction")
        commitment = kwargs.get("commitment")
        self.transaction_commitments.append(commitment)
        if self.logs is None or commitment != self.log_commitment:
            return SimpleNamespace(value=None)
        meta = SimpleNamespace(log_messages=self.logs)
        return SimpleNamespace(value=SimpleNamespace(transaction=SimpleNamespace(meta=meta)))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


class MintWorld:
    """A candy machine, its guard and a wallet registered on a fake RPC endpoint."""

    def __init__(self) -> None:
        self.client = FakeRpcClient()
        self.machine = Pubkey.new_unique()
        self.authority = Pubkey.new_unique()
        self.guard_address = Pubkey.new_unique()
        self.collection_mint = Pubkey.new_unique()
        self.treasury = Pubkey.new_unique()
        self.wallet = Keypair()

    def set_machine(self, items_loaded: int, items_redeemed: int, **kwargs) -> None:
        data = encode_candy_machine(
            self.authority,
            self.guard_address,
            self.collection_mint,
            items_available=items_loaded,
            items_redeemed=items_redeemed,
            **kwargs,
        )
        self.client.accounts[self.machine] = account(CANDY_MACHINE_PROGRAM_ID, data)

    def set_guard(self, cost_sol: Optional[float] = None, **kwargs) -> None:
        sol_payment = None
        if cost_sol is not None:
            sol_payment = (int(cost_sol * LAMPORTS_PER_SOL), self.treasury)
        data = encode_candy_guard(Pubkey.new_unique(), self.authority, sol_payment, **kwargs)
        self.client.accounts[self.guard_address] = account(CANDY_GUARD_PROGRAM_ID, data)

    def set_balance(self, sol: float) -> None:
        self.client.balances[self.wallet.pubkey()] = int(sol * LAMPORTS_PER_SOL)

    def settings(self, **overrides) -> Settings:
        values = dict(
            rpc_url="http://localhost:8899",
            candy_machine_id=str(self.machine),
            confirm_timeout_seconds=5.0,
            confirm_poll_seconds=0.001,
        )
        values.update(overrides)
        return Settings(**values)


@pytest.fixture
def world() -> MintWorld:
    world = MintWorld()
    world.set_machine(items_loaded=100, items_redeemed=50)
    world.set_guard(cost_sol=0.5)
    world.set_balance(1.0)
    return world
