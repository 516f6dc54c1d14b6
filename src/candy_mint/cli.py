"""Command line front end: show availability or mint one asset."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

import click
from solana.rpc.async_api import AsyncClient

from .config import Settings
from .errors import ConfigError
from .logging_config import setup_logging
from .models import AttemptStatus, MintAttempt, MintStatus
from .orchestrator import MintOrchestrator
from .wallet import NETWORKS, WalletSession, network_for_endpoint


def _settings(ctx: click.Context) -> Settings:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        raise click.ClickException(exc.message) from exc
    overrides = {key: value for key, value in ctx.obj.items() if value is not None}
    if "rpc_url" in overrides and "network" not in overrides:
        inferred = network_for_endpoint(overrides["rpc_url"])
        if inferred:
            overrides["network"] = inferred
    if overrides:
        settings = replace(settings, **overrides)
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _echo_status(status: MintStatus) -> None:
    click.echo(status.status_line())
    if status.blocking_reason:
        click.echo(f"Blocked: {status.blocking_reason}")
    if status.message:
        click.echo(status.message)


async def _run(
    settings: Settings, wallet: WalletSession, mint: bool
) -> Tuple[MintStatus, Optional[MintAttempt]]:
    async with AsyncClient(settings.rpc_url) as client:
        orchestrator = MintOrchestrator.from_settings(settings, wallet, client)
        await orchestrator.start()
        attempt = await orchestrator.activate_mint() if mint else None
        return orchestrator.status, attempt


@click.group()
@click.option("--rpc-url", help="RPC endpoint (defaults to RPC_URL).")
@click.option(
    "--network",
    type=click.Choice(NETWORKS, case_sensitive=False),
    help="Cluster for explorer links (defaults to SOLANA_NETWORK or the RPC URL).",
)
@click.option("--machine", "candy_machine_id", help="Candy machine address (defaults to CANDY_MACHINE_ID).")
@click.option(
    "--keypair",
    "keypair_path",
    type=click.Path(path_type=Path),
    help="Wallet keypair file (defaults to WALLET_KEYPAIR).",
)
@click.option("--log-level", help="Logging level (defaults to LOG_LEVEL).")
@click.option(
    "--log-file", type=click.Path(path_type=Path), help="Rotating log file (defaults to LOG_FILE)."
)
@click.pass_context
def cli(
    ctx: click.Context,
    rpc_url: Optional[str],
    network: Optional[str],
    candy_machine_id: Optional[str],
    keypair_path: Optional[Path],
    log_level: Optional[str],
    log_file: Optional[Path],
) -> None:
    """Mint from a Metaplex candy machine."""
    ctx.obj = {
        "rpc_url": rpc_url,
        "network": network.capitalize() if network else None,
        "candy_machine_id": candy_machine_id,
        "keypair_path": keypair_path,
        "log_level": log_level.upper() if log_level else None,
        "log_file": log_file,
    }


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show supply, price and whether the wallet could mint now."""
    settings = _settings(ctx)
    wallet = WalletSession()
    if settings.keypair_path.exists():
        try:
            wallet.connect_keypair_file(settings.keypair_path)
        except ConfigError as exc:
            click.echo(f"Wallet not loaded: {exc.message}", err=True)
    click.echo(wallet.state.status_line())
    result, _ = asyncio.run(_run(settings, wallet, mint=False))
    _echo_status(result)


@cli.command()
@click.pass_context
def mint(ctx: click.Context) -> None:
    """Mint one asset to the wallet keypair."""
    settings = _settings(ctx)
    wallet = WalletSession()
    try:
        wallet.connect_keypair_file(settings.keypair_path)
    except ConfigError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(wallet.state.status_line())

    result, attempt = asyncio.run(_run(settings, wallet, mint=True))
    if attempt is None:
        _echo_status(result)
        raise click.ClickException("Mint was not attempted.")
    if attempt.status is not AttemptStatus.CONFIRMED:
        raise click.ClickException(attempt.error or "Mint failed.")

    click.echo(result.message or "Mint was successful!")
    click.echo(f"Asset: {result.last_asset}")
    click.echo(f"Signature: {result.last_signature}")
    click.echo(f"Explorer: {result.explorer_url}")
    _echo_status(result)
