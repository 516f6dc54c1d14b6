"""Decide whether the connected wallet can mint right now."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .models import EligibilityState, GuardConfig, MachineSnapshot

LAMPORTS_PER_SOL = 1_000_000_000

SOLD_OUT = "sold out"
INSUFFICIENT_FUNDS = "insufficient funds"


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def guard_cost_lamports(guard: Optional[GuardConfig]) -> int:
    """Lamports charged by the sol payment guard; an ungated machine is free."""

    if guard is None or guard.sol_payment is None:
        return 0
    return guard.sol_payment.lamports


def evaluate(
    snapshot: MachineSnapshot,
    guard: Optional[GuardConfig] = None,
    balance_lamports: Optional[int] = None,
) -> EligibilityState:
    """Combine supply, guard cost and wallet balance into an eligibility verdict.

    A malformed snapshot with more items redeemed than loaded counts as sold
    out. When the balance is known and below the cost, the verdict is
    "insufficient funds" even if supply is also exhausted.
    """

    remaining = max(snapshot.items_loaded - snapshot.items_redeemed, 0)
    cost_lamports = guard_cost_lamports(guard)
    cost = lamports_to_sol(cost_lamports)

    mint_enabled = remaining > 0
    reason = None if mint_enabled else SOLD_OUT

    if balance_lamports is not None and balance_lamports < cost_lamports:
        mint_enabled = False
        reason = INSUFFICIENT_FUNDS

    return EligibilityState(
        remaining=remaining,
        cost_in_sol=cost,
        mint_enabled=mint_enabled,
        blocking_reason=reason,
    )
