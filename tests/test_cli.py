import json

import pytest
from click.testing import CliRunner

from candy_mint import cli as cli_module
from candy_mint.cli import cli


@pytest.fixture
def cli_env(world, monkeypatch, tmp_path):
    keypair_path = tmp_path / "id.json"
    keypair_path.write_text(json.dumps(list(world.wallet.to_bytes())))
    monkeypatch.setenv("CANDY_MACHINE_ID", str(world.machine))
    monkeypatch.setenv("WALLET_KEYPAIR", str(keypair_path))
    monkeypatch.setenv("CONFIRM_POLL_SECONDS", "0.001")
    monkeypatch.setattr(cli_module, "AsyncClient", lambda url: world.client)
    return world


def test_status_prints_counts_and_cost(cli_env):
    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code == 0, result.output
    assert "Minted: 50 / 100" in result.output
    assert "0.5 SOL" in result.output


def test_mint_prints_asset_and_explorer_link(cli_env):
    result = CliRunner().invoke(cli, ["mint"])

    assert result.exit_code == 0, result.output
    assert "Mint was successful!" in result.output
    assert "https://solscan.io/token/" in result.output
    assert len(cli_env.client.sent) == 1


def test_mint_exits_nonzero_when_blocked(cli_env):
    cli_env.set_balance(0.01)

    result = CliRunner().invoke(cli, ["mint"])

    assert result.exit_code == 1
    assert "Add more SOL to your wallet." in result.output
    assert cli_env.client.sent == []


def test_missing_keypair_is_reported(cli_env, tmp_path):
    result = CliRunner().invoke(cli, ["--keypair", str(tmp_path / "missing.json"), "mint"])

    assert result.exit_code == 1
    assert "Keypair file not found" in result.output


def test_rpc_url_override_sets_explorer_cluster(cli_env, monkeypatch):
    monkeypatch.delenv("SOLANA_NETWORK", raising=False)

    result = CliRunner().invoke(cli, ["--rpc-url", "https://api.mainnet-beta.solana.com", "mint"])

    assert result.exit_code == 0, result.output
    explorer = next(line for line in result.output.splitlines() if line.startswith("Explorer:"))
    assert "cluster=" not in explorer


def test_log_file_option_writes_log(cli_env, tmp_path):
    log_file = tmp_path / "logs" / "mint.log"

    result = CliRunner().invoke(cli, ["--log-file", str(log_file), "status"])

    assert result.exit_code == 0, result.output
    assert "Availability" in log_file.read_text()
