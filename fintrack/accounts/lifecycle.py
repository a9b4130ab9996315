"""
Account Lifecycle

Deleting an account, which may still be referenced by transactions.

STATE MACHINE:
    IDLE --(no transactions)--> SIMPLE_DELETED
    IDLE --(transactions)-----> PENDING_RESOLUTION
    PENDING_RESOLUTION --force_delete----> FORCE_DELETED
    PENDING_RESOLUTION --move_and_delete--> MOVED_AND_DELETED

A pending deletion changes nothing until the user picks a resolution.
Both resolutions are a single backend operation.
"""

from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from fintrack.errors import InvalidDeletionState, NoTargetSelected, ValidationError
from fintrack.models.account import Account
from fintrack.services.backend.interface import AccountBackendInterface


class DeletionState(str, Enum):
    IDLE = "idle"
    SIMPLE_DELETED = "simple_deleted"
    PENDING_RESOLUTION = "pending_resolution"
    FORCE_DELETED = "force_deleted"
    MOVED_AND_DELETED = "moved_and_deleted"

    @property
    def is_terminal(self) -> bool:
        return self in (
            DeletionState.SIMPLE_DELETED,
            DeletionState.FORCE_DELETED,
            DeletionState.MOVED_AND_DELETED,
        )


class AccountDeletion(BaseModel):
    """One deletion request and where it stands."""
    model_config = ConfigDict(frozen=True)

    account: Account
    state: DeletionState = DeletionState.IDLE
    transaction_count: int = 0
    target_account_id: Optional[int] = None
    moved_count: int = 0

    @property
    def needs_resolution(self) -> bool:
        return self.state == DeletionState.PENDING_RESOLUTION


class AccountLifecycleCoordinator:
    """Runs account deletions through the state machine above."""

    def __init__(self, backend: AccountBackendInterface):
        self._backend = backend
        self._logger = structlog.get_logger(__name__)

    async def request_delete(self, account: Account) -> AccountDeletion:
        """
        Start deleting an account.

        With no referencing transactions the account is deleted right away.
        Otherwise the deletion is returned PENDING_RESOLUTION and the caller
        must choose force_delete or move_and_delete.
        """
        count = await self._backend.count_transactions(account.id)
        if count == 0:
            await self._backend.delete_account(account.id)
            self._logger.info("account_deleted", account_id=account.id, strategy="simple")
            return AccountDeletion(account=account, state=DeletionState.SIMPLE_DELETED)

        self._logger.info("account_deletion_pending", account_id=account.id, transaction_count=count)
        return AccountDeletion(
            account=account,
            state=DeletionState.PENDING_RESOLUTION,
            transaction_count=count,
        )

    @staticmethod
    def _check_pending(deletion: AccountDeletion, action: str) -> None:
        if not deletion.needs_resolution:
            raise InvalidDeletionState(deletion.state.value, action)

    async def force_delete(self, deletion: AccountDeletion) -> AccountDeletion:
        """
        Delete the account with its balances and every transaction that
        references it.

        Raises:
            InvalidDeletionState: If the deletion is not pending
        """
        self._check_pending(deletion, "force-delete")
        await self._backend.delete_account(deletion.account.id, force=True)
        self._logger.warning(
            "account_deleted",
            account_id=deletion.account.id,
            strategy="force",
            transaction_count=deletion.transaction_count,
        )
        return deletion.model_copy(update={"state": DeletionState.FORCE_DELETED})

    async def move_and_delete(
        self,
        deletion: AccountDeletion,
        target_account_id: Optional[int],
    ) -> AccountDeletion:
        """
        Move every transaction to the target account, then delete the source.

        Raises:
            InvalidDeletionState: If the deletion is not pending
            NoTargetSelected: If no target was chosen
            ValidationError: If the target is the account being deleted
        """
        self._check_pending(deletion, "move-and-delete")
        if target_account_id is None:
            raise NoTargetSelected()
        if target_account_id == deletion.account.id:
            raise ValidationError(
                "targetAccountId",
                "Choose a different account to receive the transactions",
            )

        moved = await self._backend.move_and_delete(deletion.account.id, target_account_id)
        self._logger.info(
            "account_deleted",
            account_id=deletion.account.id,
            strategy="move",
            target_account_id=target_account_id,
            moved=moved,
        )
        return deletion.model_copy(update={
            "state": DeletionState.MOVED_AND_DELETED,
            "target_account_id": target_account_id,
            "moved_count": moved,
        })
