"""
Account Balance Ledger

Append-only balance snapshots per account. The current balance is the
amount of the snapshot with the latest effective date, so a backdated
entry never overrides a more recent one.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from fintrack.models.account import Account, AccountBalance, AccountType
from fintrack.services.backend.interface import AccountBackendInterface


class AccountBalanceLedger:
    """Reads and appends balance snapshots through the backend."""

    def __init__(self, backend: AccountBackendInterface):
        self._backend = backend
        self._logger = structlog.get_logger(__name__)

    async def append_snapshot(
        self,
        account_id: int,
        amount: Decimal,
        effective_date: datetime,
    ) -> AccountBalance:
        """
        Record the account's amount as of `effective_date`.

        Sign and magnitude are not checked; negative amounts are debt.
        """
        snapshot = await self._backend.add_balance(account_id, amount, effective_date)
        self._logger.info(
            "balance_appended",
            account_id=account_id,
            amount=str(snapshot.amount),
            effective_date=snapshot.date.isoformat(),
        )
        return snapshot

    async def current_snapshot(self, account_id: int) -> Optional[AccountBalance]:
        return await self._backend.get_current_balance(account_id)

    async def current_balance(self, account_id: int) -> Decimal:
        """Current amount, or 0 when the account has no snapshots."""
        snapshot = await self.current_snapshot(account_id)
        return snapshot.amount if snapshot else Decimal("0")

    async def balances_for(
        self,
        accounts: Iterable[Account],
    ) -> dict[int, Optional[AccountBalance]]:
        """Current snapshot of each account, loaded concurrently."""
        accounts = list(accounts)
        snapshots = await asyncio.gather(
            *(self.current_snapshot(account.id) for account in accounts)
        )
        return {account.id: snapshot for account, snapshot in zip(accounts, snapshots)}

    async def total_by_type(self, accounts: Iterable[Account], account_type: AccountType) -> Decimal:
        """Sum of the current balances of the accounts of one type."""
        selected = [a for a in accounts if a.type == account_type]
        balances = await self.balances_for(selected)
        return sum(
            (snapshot.amount for snapshot in balances.values() if snapshot is not None),
            Decimal("0"),
        )
