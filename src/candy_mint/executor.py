"""Sign, submit and confirm mint transactions."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.commitment import Confirmed
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.message import MessageV0, to_bytes_versioned
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from .errors import (
    ConfirmationTimeout,
    MintFailed,
    NetworkError,
    OnChainRejection,
)
from .logging_config import get_logger
from .wallet import WalletSigner

logger = get_logger(__name__)

DEFAULT_CONFIRM_TIMEOUT = 90.0
DEFAULT_POLL_INTERVAL = 2.0

_RPC_ERRORS = (SolanaRpcException, RPCException)


def program_error_message(log_messages: Optional[Sequence[str]]) -> Optional[str]:
    """Pull the program's own error text out of transaction logs, if present."""

    for line in log_messages or ():
        if "Error Message:" in line:
            return line.split("Error Message:", 1)[1].strip().rstrip(".") + "."
    return None


class MintExecutor:
    """Submit without preflight and wait for finalized confirmation.

    Nothing is retried: each failure reaches the caller, and a new attempt
    needs a new asset keypair.
    """

    def __init__(
        self,
        client: AsyncClient,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.client = client
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval

    async def submit_and_confirm(
        self,
        instructions: Sequence[Instruction],
        signer: WalletSigner,
        extra_signers: Sequence[WalletSigner] = (),
    ) -> Signature:
        """Sign with ``signer`` (fee payer) and ``extra_signers`` and land the transaction."""

        transaction = await self._sign(instructions, signer, extra_signers)
        signature = await self._send(transaction)
        logger.info("Submitted mint transaction %s", signature)
        await self._await_finalized(signature)
        logger.info("Mint transaction %s finalized", signature)
        return signature

    async def _sign(
        self,
        instructions: Sequence[Instruction],
        signer: WalletSigner,
        extra_signers: Sequence[WalletSigner],
    ) -> VersionedTransaction:
        try:
            latest = await self.client.get_latest_blockhash()
        except _RPC_ERRORS as exc:
            raise NetworkError(f"Could not fetch a recent blockhash: {exc}") from exc

        payer = signer.pubkey()
        message = MessageV0.try_compile(payer, list(instructions), [], latest.value.blockhash)
        payload = to_bytes_versioned(message)

        # The wallet signs first so a rejection aborts before anything else happens.
        signatures = {payer: signer.sign_message(payload)}
        for extra in extra_signers:
            signatures[extra.pubkey()] = extra.sign_message(payload)

        required = message.account_keys[: message.header.num_required_signatures]
        missing = [str(key) for key in required if key not in signatures]
        if missing:
            raise MintFailed(
                "Transaction needs signatures this wallet cannot provide.",
                {"missing": missing},
            )
        return VersionedTransaction.populate(message, [signatures[key] for key in required])

    async def _send(self, transaction: VersionedTransaction) -> Signature:
        try:
            response = await self.client.send_raw_transaction(
                bytes(transaction), opts=TxOpts(skip_preflight=True)
            )
        except _RPC_ERRORS as exc:
            raise NetworkError(f"Sending the transaction failed: {exc}") from exc
        return response.value

    async def _await_finalized(self, signature: Signature) -> None:
        try:
            await asyncio.wait_for(self._poll(signature), timeout=self.confirm_timeout)
        except asyncio.TimeoutError as exc:
            raise ConfirmationTimeout(str(signature), self.confirm_timeout) from exc

    async def _poll(self, signature: Signature) -> None:
        while True:
            try:
                response = await self.client.get_signature_statuses([signature])
            except _RPC_ERRORS as exc:
                raise NetworkError(
                    f"Status check for {signature} failed; the transaction may still land: {exc}"
                ) from exc
            status = response.value[0]
            if status is not None:
                if status.err is not None:
                    raise OnChainRejection(str(signature), await self._error_text(signature, status.err))
                if status.confirmation_status == TransactionConfirmationStatus.Finalized:
                    return
                logger.debug("%s at %s, waiting for finalized", signature, status.confirmation_status)
            await asyncio.sleep(self.poll_interval)

    async def _error_text(self, signature: Signature, err) -> str:
        try:
            response = await self.client.get_transaction(
                signature, commitment=Confirmed, max_supported_transaction_version=0
            )
        except _RPC_ERRORS as exc:
            logger.warning("Could not load logs for %s: %s", signature, exc)
            return str(err)
        tx = response.value
        meta = tx.transaction.meta if tx is not None else None
        return program_error_message(meta.log_messages if meta else None) or str(err)
