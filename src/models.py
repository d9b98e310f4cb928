from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from errors import EngineError, TransactionError


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class TransactionState(Enum):
    OK = "ok"
    DISPUTED = "disputed"
    CHARGEBACK = "chargeback"


@dataclass
class Transaction:
    """One decoded input row."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class TransactionRecord:
    """
    Stored outcome of an accepted deposit or withdrawal.
    Only the dispute lifecycle methods below change it, and only its state.
    """

    transaction_type: TransactionType
    client_id: int
    amount: Optional[Decimal] = None
    state: TransactionState = TransactionState.OK

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionRecord":
        return cls(
            transaction_type=transaction.transaction_type,
            client_id=transaction.client_id,
            amount=transaction.amount,
        )

    def open_dispute(self) -> None:
        self.state = TransactionState.DISPUTED

    def resolve_dispute(self) -> None:
        self.state = TransactionState.OK

    def chargeback_dispute(self) -> None:
        self.state = TransactionState.CHARGEBACK


@dataclass
class ClientAccount:
    """
    Balances of a single client.
    Does not know about transaction history: the ledger decides which amounts
    are passed in, so held or available may go negative.
    """

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    locked: bool = False

    def deposit(self, amount: Decimal) -> None:
        self._check_can_apply(amount)
        self.available += amount
        self.total += amount

    def withdrawal(self, amount: Decimal) -> None:
        self._check_can_apply(amount)
        if amount > self.available:
            raise TransactionError(EngineError.INSUFFICIENT_FUNDS)
        self.available -= amount
        self.total -= amount

    def dispute(self, amount: Decimal) -> None:
        self._check_can_apply(amount)
        self.available -= amount
        self.held += amount

    def resolve(self, amount: Decimal) -> None:
        self._check_can_apply(amount)
        self.available += amount
        self.held -= amount

    def chargeback(self, amount: Decimal) -> None:
        self._check_can_apply(amount)
        self.total -= amount
        self.held -= amount
        self.locked = True

    def _check_can_apply(self, amount: Decimal) -> None:
        if amount < 0:
            raise TransactionError(EngineError.NEGATIVE_AMOUNT)
        if self.locked:
            raise TransactionError(EngineError.ACCOUNT_LOCKED)


@dataclass
class ProcessingStats:
    """Counters for the end-of-run report."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: Counter = field(default_factory=Counter)

    def record_success(self):
        self.processed += 1

    def record_failure(self, error: EngineError):
        self.failed += 1
        self.errors[error] += 1

    def record_skipped(self):
        self.skipped += 1
