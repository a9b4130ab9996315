"""
Account Models

Accounts, their append-only balance snapshots, and the transactions that
reference them.

DESIGN DECISION: An account never stores a balance. The current balance is
derived from the AccountBalance ledger (see fintrack.accounts.ledger).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import Field, field_validator, model_validator

from fintrack.models.group import WireModel


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Kinds of account. Only CREDIT accounts have a billing cycle."""
    CASH = "CASH"
    CREDIT = "CREDIT"
    PREPAID = "PREPAID"


class DebitMethod(str, Enum):
    """How a credit account's purchases hit the budget."""
    INVOICE = "INVOICE"
    PER_PURCHASE = "PER_PURCHASE"


class BudgetMonthBasis(str, Enum):
    """Which date decides the budget month of a credit purchase."""
    PURCHASE_DATE = "PURCHASE_DATE"
    DUE_DATE = "DUE_DATE"


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"
    UPDATE = "UPDATE"


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(WireModel):
    """
    A cash, credit or prepaid account owned by a user (optionally in a group).

    Closing and due days are present if and only if the type is CREDIT.
    """

    id: int
    user_id: int
    group_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    subcategory_id: Optional[int] = None
    credit_closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    credit_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    debit_method: Optional[DebitMethod] = None
    budget_month_basis: Optional[BudgetMonthBasis] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_credit_days(self) -> "Account":
        """Closing/due days belong to CREDIT accounts, and CREDIT accounts need both."""
        has_days = (self.credit_closing_day is not None, self.credit_due_day is not None)
        if self.type == AccountType.CREDIT:
            if not all(has_days):
                raise ValueError("Credit accounts require both creditClosingDay and creditDueDay")
        elif any(has_days):
            raise ValueError(f"{self.type.value} accounts cannot have closing or due days")
        return self

    @property
    def is_credit(self) -> bool:
        return self.type == AccountType.CREDIT


class AccountBalance(WireModel):
    """
    One ledger entry: the account's amount as of an effective date.

    Amounts are signed; negative values represent debt or overdraft.
    """

    id: Optional[int] = None
    account_id: int
    amount: Decimal
    date: datetime = Field(..., description="Effective date/time of the snapshot")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        # Wire amounts are JSON numbers; go through str to avoid float noise
        if isinstance(v, float):
            return Decimal(str(v))
        return v


def latest_snapshot(snapshots: Iterable[AccountBalance]) -> Optional[AccountBalance]:
    """
    The snapshot that defines the current balance.

    Latest effective date wins, regardless of insertion order; on equal
    effective dates the later-created snapshot wins.
    """
    current = None
    for snapshot in snapshots:
        if current is None or (snapshot.date, snapshot.created_at) >= (current.date, current.created_at):
            current = snapshot
    return current


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(WireModel):
    """
    A ledger movement. Holds non-owning references to accounts.

    Transfers reference a destination account through to_account_id.
    """

    id: int
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    title: str = ""
    amount: Decimal = Decimal("0")
    date: Optional[datetime] = None
    type: TransactionType = TransactionType.EXPENSE
    user_id: Optional[int] = None
    group_id: Optional[int] = None

    def references(self, account_id: int) -> bool:
        return self.account_id == account_id or self.to_account_id == account_id
