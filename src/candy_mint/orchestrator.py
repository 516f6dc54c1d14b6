"""State machine that loads availability and drives a mint from click to finalization."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from solana.rpc.async_api import AsyncClient

from .builder import MintTransactionBuilder
from .config import Settings
from .eligibility import INSUFFICIENT_FUNDS, evaluate
from .errors import CandyMintError, ConfigError, FetchError, WalletNotConnected
from .executor import MintExecutor
from .logging_config import get_logger
from .models import (
    AttemptStatus,
    EligibilityState,
    GuardConfig,
    MachineSnapshot,
    MintAttempt,
    MintState,
    MintStatus,
)
from .reader import RemoteStateReader
from .wallet import WalletSession, explorer_url

logger = get_logger(__name__)

FETCH_FAILED_MESSAGE = "There was an error fetching the candy machine. Try refreshing."
INSUFFICIENT_FUNDS_MESSAGE = "Add more SOL to your wallet."
NOT_AVAILABLE_MESSAGE = "Minting is not available right now."
MINT_SUCCESS_MESSAGE = "Mint was successful!"

StatusListener = Callable[[MintStatus], None]


class MintOrchestrator:
    """Sequence reader, eligibility, builder and executor for one user session.

    ``status`` is the read-only surface for the presentation layer and
    ``activate_mint`` is its only mutation entry point. All work runs on one
    event loop; at most one attempt is in flight at a time.
    """

    def __init__(
        self,
        settings: Settings,
        reader: RemoteStateReader,
        builder: MintTransactionBuilder,
        executor: MintExecutor,
        wallet: WalletSession,
    ) -> None:
        self.settings = settings
        self.reader = reader
        self.builder = builder
        self.executor = executor
        self.wallet = wallet
        self.status = MintStatus()
        self.eligibility: Optional[EligibilityState] = None
        self._snapshot: Optional[MachineSnapshot] = None
        self._guard: Optional[GuardConfig] = None
        self._attempt: Optional[MintAttempt] = None
        self._config_error: Optional[ConfigError] = None
        # message set by the last refresh, cleared by the next successful one
        self._availability_message: Optional[str] = None
        self._listeners: list[StatusListener] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        wallet: WalletSession,
        client: Optional[AsyncClient] = None,
    ) -> "MintOrchestrator":
        client = client or AsyncClient(settings.rpc_url)
        return cls(
            settings,
            RemoteStateReader(client),
            MintTransactionBuilder(settings.compute_unit_limit),
            MintExecutor(
                client,
                confirm_timeout=settings.confirm_timeout_seconds,
                poll_interval=settings.confirm_poll_seconds,
            ),
            wallet,
        )

    @property
    def snapshot(self) -> Optional[MachineSnapshot]:
        return self._snapshot

    @property
    def guard(self) -> Optional[GuardConfig]:
        return self._guard

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        """Load availability on mount and follow wallet (re)connections."""

        if self._loop is None:
            self.wallet.subscribe_connect(lambda _signer: self._schedule_wallet_refresh())
            self.wallet.subscribe_disconnect(self._schedule_wallet_refresh)
        self._loop = asyncio.get_running_loop()
        await self.refresh_availability()

    async def on_wallet_changed(self) -> None:
        """Re-run balance gating after the wallet connects or disconnects."""

        await self.refresh_availability()

    def dismiss_message(self) -> None:
        self._update(message=None)

    async def refresh_availability(self) -> None:
        """Re-read machine, guard and balance and recompute eligibility.

        Safe to call repeatedly. Results that arrive while an attempt is
        minting are discarded; a refresh always follows the attempt.
        """

        if self._config_error is not None:
            return
        try:
            machine_address = self.settings.machine_address()
        except ConfigError as exc:
            self._config_error = exc
            logger.error("Configuration error: %s", exc.message)
            self._update(state=MintState.DISABLED, message=exc.message)
            return

        if self.status.state is not MintState.MINTING:
            self._update(state=MintState.LOADING_AVAILABILITY)

        signer = self.wallet.signer
        try:
            snapshot = await self.reader.fetch_machine_snapshot(machine_address)
            guard = await self.reader.fetch_guard_config(snapshot.mint_authority)
            balance = await self.reader.fetch_balance(signer.pubkey()) if signer else None
        except FetchError as exc:
            if self.status.state is MintState.MINTING:
                logger.debug("Ignoring refresh failure while minting: %s", exc.message)
                return
            logger.warning("Availability refresh failed: %s", exc.message)
            message = self.status.message
            # the outcome of the last attempt outranks a fetch error
            if message is None or message == self._availability_message:
                message = self._availability_message = exc.message
            self._update(state=MintState.DISABLED, message=message)
            return

        if self.status.state is MintState.MINTING:
            logger.debug("Discarding availability refresh while minting")
            return
        self._apply(snapshot, guard, balance)

    def _apply(
        self,
        snapshot: MachineSnapshot,
        guard: Optional[GuardConfig],
        balance: Optional[int],
    ) -> None:
        self._snapshot = snapshot
        self._guard = guard
        eligibility = evaluate(snapshot, guard, balance)
        self.eligibility = eligibility

        message = self.status.message
        if message == self._availability_message:
            message = None
        self._availability_message = None
        if eligibility.blocking_reason == INSUFFICIENT_FUNDS:
            self._availability_message = message = INSUFFICIENT_FUNDS_MESSAGE

        state = MintState.READY if eligibility.mint_enabled else MintState.DISABLED
        logger.info(
            "Availability: %d/%d minted, %s SOL, %s",
            snapshot.items_redeemed,
            snapshot.items_loaded,
            eligibility.cost_in_sol,
            state.value if eligibility.mint_enabled else eligibility.blocking_reason,
        )
        self._update(
            state=state,
            count_total=snapshot.items_loaded,
            count_minted=snapshot.items_redeemed,
            count_remaining=eligibility.remaining,
            cost_in_sol=eligibility.cost_in_sol,
            blocking_reason=eligibility.blocking_reason,
            message=message,
        )

    async def activate_mint(self) -> Optional[MintAttempt]:
        """Mint one asset to the connected wallet.

        Returns the finished attempt, or None when the activation was a no-op
        (already minting, wallet disconnected, nothing loaded, not eligible).
        """

        if self.status.state is MintState.MINTING:
            logger.debug("Mint already in flight; ignoring activation")
            return None
        signer = self.wallet.signer
        if signer is None:
            self._update(message=WalletNotConnected().message)
            return None
        if self._snapshot is None:
            self._update(message=self._config_error.message if self._config_error else FETCH_FAILED_MESSAGE)
            return None
        if self.status.state is not MintState.READY:
            self._update(message=self._blocked_message())
            return None

        self.wallet.register_activity()
        attempt = MintAttempt()
        self._attempt = attempt
        self._update(state=MintState.MINTING, loading=True, message=None)
        logger.info("Minting asset %s", attempt.asset_address)
        try:
            instructions = self.builder.build(
                self._snapshot, self._guard, attempt.asset_address, signer.pubkey()
            )
            attempt.status = AttemptStatus.SUBMITTED
            attempt.signature = await self.executor.submit_and_confirm(
                instructions, signer, [attempt.asset]
            )
        except CandyMintError as exc:
            self._fail(attempt, exc.message)
        except Exception as exc:  # noqa: BLE001 - surface wallet and RPC errors
            logger.exception("Unexpected mint failure")
            self._fail(attempt, str(exc) or exc.__class__.__name__)
        else:
            attempt.status = AttemptStatus.CONFIRMED
            asset = str(attempt.asset_address)
            self._update(
                state=MintState.MINTED,
                message=MINT_SUCCESS_MESSAGE,
                last_asset=asset,
                last_signature=str(attempt.signature),
                explorer_url=explorer_url(asset, self.settings.network),
            )
        finally:
            self._attempt = None
            self._update(loading=False)

        await self.refresh_availability()
        return attempt

    def _fail(self, attempt: MintAttempt, message: str) -> None:
        attempt.status = AttemptStatus.FAILED
        attempt.error = message
        logger.warning("Mint of %s failed: %s", attempt.asset_address, message)
        self._update(state=MintState.FAILED, message=message)

    def _blocked_message(self) -> str:
        if self.eligibility and self.eligibility.blocking_reason == INSUFFICIENT_FUNDS:
            return INSUFFICIENT_FUNDS_MESSAGE
        if self.eligibility and self.eligibility.blocking_reason:
            return f"Minting is disabled: {self.eligibility.blocking_reason}."
        return NOT_AVAILABLE_MESSAGE

    def _schedule_wallet_refresh(self) -> None:
        # Wallet listeners may fire from a timer thread.
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._spawn_wallet_refresh)

    def _spawn_wallet_refresh(self) -> None:
        task = self._loop.create_task(self.on_wallet_changed())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _update(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self.status, name, value)
        self.status.mint_disabled = self.status.state is not MintState.READY
        for listener in self._listeners:
            listener(self.status)
