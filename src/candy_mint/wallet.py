"""Wallet session helpers: the connected signer, its listeners and RPC endpoints."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional, Protocol

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ConfigError, WalletNotConnected
from .logging_config import get_logger

logger = get_logger(__name__)

Network = Literal["Mainnet", "Testnet", "Devnet"]
NETWORKS: list[Network] = ["Mainnet", "Testnet", "Devnet"]

DEFAULT_ENDPOINTS: dict[Network, list[str]] = {
    "Mainnet": [
        "https://api.mainnet-beta.solana.com",
    ],
    "Testnet": [
        "https://api.testnet.solana.com",
    ],
    "Devnet": [
        "https://api.devnet.solana.com",
        "https://rpc.ankr.com/solana_devnet",
    ],
}

EXPLORER_CLUSTERS: dict[Network, Optional[str]] = {
    "Mainnet": None,
    "Testnet": "testnet",
    "Devnet": "devnet",
}


class WalletSigner(Protocol):
    """Signing capability supplied by a wallet; a solders ``Keypair`` satisfies it.

    ``sign_message`` raises ``UserRejected`` when the user declines.
    """

    def pubkey(self) -> Pubkey: ...

    def sign_message(self, message: bytes) -> Signature: ...


def network_for_endpoint(rpc_url: str) -> Optional[Network]:
    """Guess the cluster an RPC endpoint serves, or None when the URL does not say."""

    for network, endpoints in DEFAULT_ENDPOINTS.items():
        if rpc_url.rstrip("/") in endpoints:
            return network
    lowered = rpc_url.lower()
    for network in NETWORKS:
        if network.lower() in lowered:
            return network
    return None


def explorer_url(asset: str, network: Network) -> str:
    """Return the Solscan page for a minted asset."""

    cluster = EXPLORER_CLUSTERS[network]
    url = f"https://solscan.io/token/{asset}"
    if cluster:
        url += f"?cluster={cluster}"
    return url


def load_keypair(path: Path) -> Keypair:
    """Load a Solana CLI keypair file (a JSON array of 64 secret key bytes)."""

    try:
        secret = json.loads(path.read_text())
    except FileNotFoundError as exc:
        raise ConfigError(f"Keypair file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Keypair file is not valid JSON: {path}") from exc
    try:
        return Keypair.from_bytes(bytes(secret))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Keypair file does not hold a secret key: {path}") from exc


@dataclass
class SessionState:
    """Current connection posture of the wallet."""

    connected: bool = False
    public_key: Optional[str] = None
    timer_handle: Optional[threading.Timer] = None

    def status_line(self) -> str:
        if not self.connected or not self.public_key:
            return "Disconnected · Please connect your wallet"
        short = f"{self.public_key[:4]}…{self.public_key[-4:]}"
        return f"Connected · {short}"


class WalletSession:
    """Hold the connected signer and notify listeners on connect and disconnect.

    Secret material stays inside the signer object; the session never
    serializes or persists it.
    """

    def __init__(self, inactivity_seconds: float = 0) -> None:
        self.inactivity_seconds = inactivity_seconds
        self.state = SessionState()
        self._signer: Optional[WalletSigner] = None
        self._connect_listeners: list[Callable[[WalletSigner], None]] = []
        self._disconnect_listeners: list[Callable[[], None]] = []

    @property
    def connected(self) -> bool:
        return self.state.connected

    @property
    def signer(self) -> Optional[WalletSigner]:
        return self._signer

    def require_signer(self) -> WalletSigner:
        if self._signer is None:
            raise WalletNotConnected()
        return self._signer

    def subscribe_connect(self, listener: Callable[[WalletSigner], None]) -> None:
        self._connect_listeners.append(listener)

    def subscribe_disconnect(self, listener: Callable[[], None]) -> None:
        self._disconnect_listeners.append(listener)

    def connect(self, signer: WalletSigner) -> None:
        """Mark the session connected with ``signer``."""

        self._signer = signer
        self.state.connected = True
        self.state.public_key = str(signer.pubkey())
        logger.info("Wallet connected: %s", self.state.public_key)
        self._start_timer()
        for listener in self._connect_listeners:
            listener(signer)

    def connect_keypair_file(self, path: Path) -> Pubkey:
        keypair = load_keypair(path)
        self.connect(keypair)
        return keypair.pubkey()

    def connect_ephemeral(self) -> Pubkey:
        """Connect a throwaway in-memory keypair, useful on devnet."""

        keypair = Keypair()
        self.connect(keypair)
        return keypair.pubkey()

    def register_activity(self) -> None:
        """Reset the inactivity timer upon user interaction."""

        if not self.connected:
            return
        self._start_timer()

    def disconnect(self, reason: str = "manual") -> None:
        """Drop the signer; an already submitted transaction may still land."""

        self._cancel_timer()
        was_connected = self.state.connected
        self._signer = None
        self.state.connected = False
        self.state.public_key = None
        if was_connected:
            logger.info("Wallet disconnected (%s)", reason)
        for listener in self._disconnect_listeners:
            listener()

    def _start_timer(self) -> None:
        if self.inactivity_seconds <= 0:
            return
        self._cancel_timer()
        timer = threading.Timer(self.inactivity_seconds, self._expire_session)
        timer.daemon = True
        timer.start()
        self.state.timer_handle = timer

    def _cancel_timer(self) -> None:
        if self.state.timer_handle:
            self.state.timer_handle.cancel()
            self.state.timer_handle = None

    def _expire_session(self) -> None:
        self.disconnect("timeout")

    def shutdown(self) -> None:
        """Clean up resources, primarily timers used in tests."""

        self._cancel_timer()
