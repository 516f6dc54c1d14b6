import asyncio

import pytest
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from candy_mint.errors import FetchError, MachineNotFound
from candy_mint.models import GuardKind, TokenStandard
from candy_mint.programs import CANDY_MACHINE_PROGRAM_ID
from candy_mint.reader import RemoteStateReader, decode_candy_guard

from conftest import account, encode_candy_guard, encode_candy_machine, transport_error


def test_machine_snapshot_reads_counters_and_wiring(world):
    reader = RemoteStateReader(world.client)

    snapshot = asyncio.run(reader.fetch_machine_snapshot(world.machine))

    assert snapshot.items_loaded == 100
    assert snapshot.items_redeemed == 50
    assert snapshot.authority == world.authority
    assert snapshot.mint_authority == world.guard_address
    assert snapshot.collection_mint == world.collection_mint
    assert snapshot.token_standard is TokenStandard.PROGRAMMABLE_NON_FUNGIBLE


def test_items_loaded_comes_from_config_line_count(world):
    data = encode_candy_machine(
        world.authority,
        world.guard_address,
        world.collection_mint,
        items_available=500,
        items_redeemed=3,
        items_loaded=120,
    )
    world.client.accounts[world.machine] = account(CANDY_MACHINE_PROGRAM_ID, data)

    snapshot = asyncio.run(RemoteStateReader(world.client).fetch_machine_snapshot(world.machine))

    assert snapshot.items_available == 500
    assert snapshot.items_loaded == 120


def test_hidden_settings_machine_counts_all_available_items(world):
    data = encode_candy_machine(
        world.authority,
        world.guard_address,
        world.collection_mint,
        items_available=42,
        items_redeemed=2,
        items_loaded=0,
        token_standard=0,
        hidden_settings=True,
    )
    world.client.accounts[world.machine] = account(CANDY_MACHINE_PROGRAM_ID, data)

    snapshot = asyncio.run(RemoteStateReader(world.client).fetch_machine_snapshot(world.machine))

    assert snapshot.items_loaded == 42
    assert snapshot.token_standard is TokenStandard.NON_FUNGIBLE


def test_missing_machine_raises_not_found(world):
    reader = RemoteStateReader(world.client)

    with pytest.raises(MachineNotFound):
        asyncio.run(reader.fetch_machine_snapshot(Pubkey.new_unique()))


def test_account_owned_by_other_program_is_not_a_machine(world):
    data = world.client.accounts[world.machine].data
    world.client.accounts[world.machine] = account(Pubkey.new_unique(), data)

    with pytest.raises(MachineNotFound):
        asyncio.run(RemoteStateReader(world.client).fetch_machine_snapshot(world.machine))


def test_truncated_machine_account_is_a_fetch_error(world):
    data = world.client.accounts[world.machine].data[:120]
    world.client.accounts[world.machine] = account(CANDY_MACHINE_PROGRAM_ID, data)

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(RemoteStateReader(world.client).fetch_machine_snapshot(world.machine))
    assert not isinstance(excinfo.value, MachineNotFound)


def test_transport_failure_is_a_fetch_error(world):
    world.client.fail_on["get_account_info"] = transport_error("connection reset")

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(RemoteStateReader(world.client).fetch_machine_snapshot(world.machine))
    assert not isinstance(excinfo.value, MachineNotFound)
    assert excinfo.value.details["address"] == str(world.machine)


def test_rpc_error_on_balance_is_a_fetch_error(world):
    world.client.fail_on["get_balance"] = RPCException("Node is behind")

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(RemoteStateReader(world.client).fetch_balance(world.wallet.pubkey()))
    assert "Node is behind" in excinfo.value.message


def test_guard_config_decodes_sol_payment(world):
    guard = asyncio.run(RemoteStateReader(world.client).fetch_guard_config(world.guard_address))

    assert guard is not None
    assert guard.authority == world.authority
    assert guard.enabled == frozenset({GuardKind.SOL_PAYMENT})
    assert guard.sol_payment.lamports == 500_000_000
    assert guard.sol_payment.destination == world.treasury


def test_absent_guard_is_not_an_error(world):
    del world.client.accounts[world.guard_address]

    guard = asyncio.run(RemoteStateReader(world.client).fetch_guard_config(world.guard_address))

    assert guard is None


def test_wallet_mint_authority_means_no_guard(world):
    world.client.accounts[world.guard_address] = account(Pubkey.new_unique(), b"")

    guard = asyncio.run(RemoteStateReader(world.client).fetch_guard_config(world.guard_address))

    assert guard is None


def test_guard_decoding_skips_bot_tax_and_flags_unknown_bits():
    treasury = Pubkey.new_unique()
    data = encode_candy_guard(
        Pubkey.new_unique(),
        Pubkey.new_unique(),
        sol_payment=(250_000_000, treasury),
        bot_tax=True,
        extra_bits=(9, 40),
    )

    guard = decode_candy_guard(Pubkey.new_unique(), data)

    assert guard.enabled == frozenset(
        {GuardKind.BOT_TAX, GuardKind.SOL_PAYMENT, GuardKind.MINT_LIMIT, GuardKind.UNKNOWN}
    )
    assert guard.sol_payment.lamports == 250_000_000
    assert guard.sol_payment.destination == treasury


def test_balance_lookup(world):
    lamports = asyncio.run(RemoteStateReader(world.client).fetch_balance(world.wallet.pubkey()))

    assert lamports == 1_000_000_000

