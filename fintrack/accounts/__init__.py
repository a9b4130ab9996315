"""Accounts: credit cycles, balance ledger and deletion lifecycle."""

from fintrack.accounts.credit_cycle import (
    CreditCycle,
    compute_cycle,
    cycle_for_account,
    is_in_closing_period,
)
from fintrack.accounts.ledger import AccountBalanceLedger
from fintrack.accounts.lifecycle import (
    AccountDeletion,
    AccountLifecycleCoordinator,
    DeletionState,
)

__all__ = [
    "AccountBalanceLedger",
    "AccountDeletion",
    "AccountLifecycleCoordinator",
    "CreditCycle",
    "DeletionState",
    "compute_cycle",
    "cycle_for_account",
    "is_in_closing_period",
]
