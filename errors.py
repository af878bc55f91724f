from typing import Optional


class TransactionError(Exception):
    """Base class for errors local to a single transaction record."""

    error_code = "TRANSACTION_ERROR"

    def __init__(self, reason: str, *, client: Optional[int] = None, tx: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.client = client
        self.tx = tx


class MalformedRecordError(TransactionError):
    """Raised when a raw record has missing, unparseable or out-of-range fields."""

    error_code = "MALFORMED_RECORD"


class UnknownAccountStateError(TransactionError):
    """Raised when a locked account is asked to move funds."""

    error_code = "ACCOUNT_LOCKED"


class InsufficientFundsError(TransactionError):
    """Raised when a withdrawal exceeds the available funds."""

    error_code = "INSUFFICIENT_FUNDS"


class DuplicateTransactionError(TransactionError):
    """Raised when a deposit reuses a transaction id already in the ledger."""

    error_code = "DUPLICATE_TRANSACTION"


class InvalidDisputeReferenceError(TransactionError):
    """Raised when a dispute, resolve or chargeback names no deposit of this client."""

    error_code = "INVALID_DISPUTE_REFERENCE"


class IllegalDisputeTransitionError(TransactionError):
    """Raised when the referenced deposit is in the wrong dispute state."""

    error_code = "ILLEGAL_DISPUTE_TRANSITION"


class AmountOverflowError(TransactionError):
    """Raised when a balance would no longer be exact at four decimal places."""

    error_code = "AMOUNT_OVERFLOW"


class SourceError(Exception):
    """Raised when a record stream cannot be read at all."""
