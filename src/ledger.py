import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict

from errors import EngineError, TransactionError
from models import (
    Transaction,
    TransactionType,
    TransactionState,
    TransactionRecord,
    ClientAccount,
)

logger = logging.getLogger(__name__)


class Ledger:
    """
    Owns client accounts and the history of accepted deposits and withdrawals.
    All mutation goes through process_transaction; records are applied one at
    a time in input order.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self._transactions: Dict[int, TransactionRecord] = {}

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def get_transaction(self, transaction_id: int) -> TransactionRecord:
        """Retrieve stored transaction by ID, raising TRX_NOT_FOUND if absent."""
        record = self._transactions.get(transaction_id)
        if record is None:
            raise TransactionError(EngineError.TRX_NOT_FOUND)
        return record

    def get_accounts(self) -> Dict[int, ClientAccount]:
        """Return copies of all accounts (for final output)."""
        return {client_id: replace(account) for client_id, account in self._accounts.items()}

    def process_transaction(self, transaction: Transaction) -> None:
        """
        Apply a single record.

        Raises:
            TransactionError: the record was rejected. Nothing was mutated,
                apart from the account which is created on first reference.
        """
        account = self.get_or_create_account(transaction.client_id)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                self._handle_chargeback(account, transaction)

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> None:
        amount = self._check_new_transaction(transaction)
        account.deposit(amount)
        self._transactions[transaction.transaction_id] = TransactionRecord.from_transaction(transaction)

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> None:
        amount = self._check_new_transaction(transaction)
        account.withdrawal(amount)
        self._transactions[transaction.transaction_id] = TransactionRecord.from_transaction(transaction)

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self.get_transaction(transaction.transaction_id)
        self._check_same_client(original, transaction)

        # Withdrawals cannot be disputed, the funds already left the account
        if original.transaction_type != TransactionType.DEPOSIT:
            raise TransactionError(EngineError.TRX_NOT_DISPUTABLE)

        if original.state != TransactionState.OK:
            raise TransactionError(EngineError.TRX_NOT_IN_DISPUTABLE_STATE)

        account.dispute(self._stored_amount(original))
        original.open_dispute()

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self.get_transaction(transaction.transaction_id)

        if original.state != TransactionState.DISPUTED:
            raise TransactionError(EngineError.TRX_NOT_IN_DISPUTE)

        self._check_same_client(original, transaction)
        account.resolve(self._stored_amount(original))
        original.resolve_dispute()

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> None:
        original = self.get_transaction(transaction.transaction_id)
        self._check_same_client(original, transaction)

        # No DISPUTED check here: a record that was resolved can still be charged back
        account.chargeback(self._stored_amount(original))
        original.chargeback_dispute()

    def _check_new_transaction(self, transaction: Transaction) -> Decimal:
        if transaction.transaction_id in self._transactions:
            raise TransactionError(EngineError.TRX_ALREADY_PROCESSED)
        if transaction.amount is None:
            raise TransactionError(EngineError.TRX_INVALID_AMOUNT)
        return transaction.amount

    @staticmethod
    def _check_same_client(original: TransactionRecord, transaction: Transaction) -> None:
        if original.client_id != transaction.client_id:
            logger.debug(
                f"Tx {transaction.transaction_id} belongs to client {original.client_id}, "
                f"referenced by client {transaction.client_id}"
            )
            raise TransactionError(EngineError.TRX_CLIENT_ID_INCONSISTENCY)

    @staticmethod
    def _stored_amount(original: TransactionRecord) -> Decimal:
        if original.amount is None:
            raise TransactionError(EngineError.TRX_INVALID_AMOUNT)
        return original.amount
