"""
Runtime settings for candy_mint.

Values come from the environment (a ``.env`` file is loaded first) and are
read once at startup. A missing candy machine id is not fatal here: it is
reported through ``Settings.machine_address`` so the orchestrator can show
it to the user.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from solders.pubkey import Pubkey

from .builder import DEFAULT_COMPUTE_UNIT_LIMIT
from .errors import ConfigError
from .executor import DEFAULT_CONFIRM_TIMEOUT, DEFAULT_POLL_INTERVAL
from .wallet import DEFAULT_ENDPOINTS, NETWORKS, Network, network_for_endpoint

DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"

MISSING_MACHINE_MESSAGE = "No candy machine ID found. Add environment variable."


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number", {"value": raw}) from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive", {"value": raw})
    return value


@dataclass(frozen=True)
class Settings:
    """Connection and mint parameters for one session."""

    rpc_url: str
    network: Network = "Devnet"
    candy_machine_id: Optional[str] = None
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT
    confirm_timeout_seconds: float = DEFAULT_CONFIRM_TIMEOUT
    confirm_poll_seconds: float = DEFAULT_POLL_INTERVAL
    keypair_path: Path = Path(DEFAULT_KEYPAIR_PATH).expanduser()
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, load_file: bool = True
    ) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ``)."""

        if env is None:
            if load_file:
                load_dotenv()
            env = os.environ

        rpc_url = env.get("RPC_URL", "").strip()
        default_network = (rpc_url and network_for_endpoint(rpc_url)) or "Devnet"
        network = (env.get("SOLANA_NETWORK", "").strip() or default_network).capitalize()
        if network not in NETWORKS:
            raise ConfigError(
                f"SOLANA_NETWORK must be one of {', '.join(NETWORKS)}",
                {"value": network},
            )

        rpc_url = rpc_url or DEFAULT_ENDPOINTS[network][0]
        candy_machine_id = env.get("CANDY_MACHINE_ID", "").strip() or None

        return cls(
            rpc_url=rpc_url,
            network=network,
            candy_machine_id=candy_machine_id,
            compute_unit_limit=_number(
                env, "COMPUTE_UNIT_LIMIT", DEFAULT_COMPUTE_UNIT_LIMIT, int
            ),
            confirm_timeout_seconds=_number(
                env, "CONFIRM_TIMEOUT_SECONDS", DEFAULT_CONFIRM_TIMEOUT, float
            ),
            confirm_poll_seconds=_number(
                env, "CONFIRM_POLL_SECONDS", DEFAULT_POLL_INTERVAL, float
            ),
            keypair_path=Path(env.get("WALLET_KEYPAIR", DEFAULT_KEYPAIR_PATH)).expanduser(),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file=Path(env["LOG_FILE"]).expanduser() if env.get("LOG_FILE") else None,
        )

    def machine_address(self) -> Pubkey:
        """Return the configured candy machine address.

        Raises ``ConfigError`` when the id is missing or not a base58 pubkey.
        """

        if not self.candy_machine_id:
            raise ConfigError(MISSING_MACHINE_MESSAGE)
        try:
            return Pubkey.from_string(self.candy_machine_id)
        except ValueError as exc:
            raise ConfigError(
                "CANDY_MACHINE_ID is not a valid address.",
                {"value": self.candy_machine_id},
            ) from exc
