"""Client-side orchestration for minting from a Metaplex candy machine."""

from .builder import MintTransactionBuilder
from .config import Settings
from .eligibility import LAMPORTS_PER_SOL, evaluate
from .executor import MintExecutor
from .models import (
    EligibilityState,
    GuardConfig,
    GuardKind,
    MachineSnapshot,
    MintAttempt,
    MintState,
    MintStatus,
    SolPayment,
)
from .orchestrator import MintOrchestrator
from .reader import RemoteStateReader
from .wallet import WalletSession

__all__ = [
    "EligibilityState",
    "GuardConfig",
    "GuardKind",
    "LAMPORTS_PER_SOL",
    "MachineSnapshot",
    "MintAttempt",
    "MintExecutor",
    "MintOrchestrator",
    "MintState",
    "MintStatus",
    "MintTransactionBuilder",
    "RemoteStateReader",
    "Settings",
    "SolPayment",
    "WalletSession",
    "evaluate",
]
