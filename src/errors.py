from enum import Enum


class EngineError(Enum):
    INSUFFICIENT_FUNDS = "insufficient funds to execute transaction"
    NEGATIVE_AMOUNT = "negative transaction amount"
    ACCOUNT_LOCKED = "account in locked state"
    TRX_ALREADY_PROCESSED = "transaction already processed"
    TRX_INVALID_AMOUNT = "transaction contains an invalid amount to process"
    TRX_NOT_FOUND = "transaction not found in ledger"
    TRX_NOT_IN_DISPUTABLE_STATE = "transaction not in a disputable state"
    TRX_NOT_IN_DISPUTE = "transaction not in dispute"
    TRX_NOT_DISPUTABLE = "transaction type is not disputable"
    TRX_CLIENT_ID_INCONSISTENCY = "client id present in transaction is not consistent with the related transaction"


class TransactionError(Exception):
    """
    Raised when a single record cannot be applied.
    Always terminal for that record only; the run carries on with the next one.
    """

    def __init__(self, error: EngineError):
        super().__init__(error.value)
        self.error = error
