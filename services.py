from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional
from pydantic import ValidationError
import structlog

from config import Settings
from errors import (
    DuplicateTransactionError,
    InvalidDisputeReferenceError,
    MalformedRecordError,
    TransactionError,
    UnknownAccountStateError,
)
from models import (
    RECORD_FIELDS,
    Account,
    AccountSummary,
    DisputableDeposit,
    DisputeState,
    TransactionRecord,
    TransactionType,
)
from repositories import AccountRepository, DisputeLedger, get_account_repository, get_dispute_ledger

logger = structlog.get_logger()


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "record"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _raw_field(raw: Any, name: str) -> Any:
    if isinstance(raw, TransactionRecord):
        value = getattr(raw, name)
        return value.value if isinstance(value, TransactionType) else value
    if isinstance(raw, Mapping):
        return raw.get(name)
    if isinstance(raw, (list, tuple)):
        idx = RECORD_FIELDS.index(name)
        return raw[idx] if idx < len(raw) else None
    return None


def parse_record(raw: Any) -> TransactionRecord:
    """Validate one raw record. Raises MalformedRecordError."""
    if isinstance(raw, TransactionRecord):
        return raw
    try:
        return TransactionRecord.model_validate(raw)
    except ValidationError as e:
        raise MalformedRecordError(f"{_describe_validation_error(e)} in row {raw!r}")


class ProcessingStats:
    """Counters for applied and ignored records."""

    def __init__(self):
        self.processed = 0
        self.rejected = 0
        self.rejections: Counter = Counter()

    def record_success(self) -> None:
        self.processed += 1

    def record_failure(self, error: TransactionError) -> None:
        self.rejected += 1
        self.rejections[error.error_code] += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "rejected": self.rejected,
            "rejections": dict(self.rejections),
        }


class TransactionService:
    """Transaction Dispatcher.

    Applies records one at a time, in arrival order, to the account store
    and the dispute ledger it was given. Only deposits are remembered.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        dispute_ledger: DisputeLedger,
        lock_blocks_disputes: bool = False,
    ):
        self.account_repo = account_repo
        self.dispute_ledger = dispute_ledger
        self.lock_blocks_disputes = lock_blocks_disputes
        self.stats = ProcessingStats()

    def process(self, raw: Any) -> None:
        """Process one raw record. Failures are logged and the record dropped."""
        try:
            record = parse_record(raw)
            self.apply(record)
        except TransactionError as e:
            self.stats.record_failure(e)
            logger.warning(
                "Transaction rejected",
                error_code=e.error_code,
                reason=e.reason,
                type=_raw_field(raw, "type"),
                client=e.client if e.client is not None else _raw_field(raw, "client"),
                tx=e.tx if e.tx is not None else _raw_field(raw, "tx"),
            )
            return

        self.stats.record_success()

    def process_all(self, records: Iterable[Any]) -> None:
        """Drain a record source, one record at a time."""
        logger.info("Processing started")
        for raw in records:
            self.process(raw)
        logger.info(
            "Processing finished",
            accounts_count=self.account_repo.get_accounts_count(),
            deposits_count=self.dispute_ledger.get_deposits_count(),
            **self.stats.as_dict()
        )

    def apply(self, record: TransactionRecord) -> None:
        """Apply a validated record. Raises TransactionError on any precondition failure."""
        account = self.account_repo.get_or_create_account(record.client)

        try:
            if record.type == TransactionType.deposit:
                self._process_deposit(record, account)
            elif record.type == TransactionType.withdrawal:
                self.account_repo.withdraw(account, record.amount)
            elif record.type == TransactionType.dispute:
                self._process_dispute(record, account)
            elif record.type == TransactionType.resolve:
                self._process_resolve(record, account)
            elif record.type == TransactionType.chargeback:
                self._process_chargeback(record, account)
        except TransactionError as e:
            e.client = record.client
            e.tx = record.tx
            raise

        logger.debug(
            "Transaction applied",
            type=record.type.value,
            client=record.client,
            tx=record.tx,
            available=str(account.available),
            held=str(account.held),
            locked=account.locked,
        )

    def _process_deposit(self, record: TransactionRecord, account: Account) -> None:
        if self.dispute_ledger.lookup(record.tx) is not None:
            raise DuplicateTransactionError("deposit duplicates existing tx id")
        self.account_repo.deposit(account, record.amount)
        self.dispute_ledger.record_deposit(record.tx, record.client, record.amount)

    def _disputed_deposit(self, record: TransactionRecord, account: Account) -> DisputableDeposit:
        if self.lock_blocks_disputes and account.locked:
            raise UnknownAccountStateError(f"account is locked, {record.type.value} refused")

        deposit = self.dispute_ledger.lookup(record.tx)
        if deposit is None:
            raise InvalidDisputeReferenceError("tx not found or not a deposit")
        if deposit.client != record.client:
            raise InvalidDisputeReferenceError(f"tx belongs to client {deposit.client}")
        return deposit

    def _process_dispute(self, record: TransactionRecord, account: Account) -> None:
        deposit = self._disputed_deposit(record, account)
        self.dispute_ledger.check_transition(record.tx, DisputeState.disputed)
        self.account_repo.hold(account, deposit.amount)
        self.dispute_ledger.transition(record.tx, DisputeState.disputed)

    def _process_resolve(self, record: TransactionRecord, account: Account) -> None:
        deposit = self._disputed_deposit(record, account)
        self.dispute_ledger.check_transition(record.tx, DisputeState.normal)
        self.account_repo.release(account, deposit.amount)
        self.dispute_ledger.transition(record.tx, DisputeState.normal)

    def _process_chargeback(self, record: TransactionRecord, account: Account) -> None:
        deposit = self._disputed_deposit(record, account)
        self.dispute_ledger.check_transition(record.tx, DisputeState.charged_back)
        self.account_repo.charge_back(account, deposit.amount)
        self.dispute_ledger.transition(record.tx, DisputeState.charged_back)

    def summaries(self) -> List[AccountSummary]:
        """Snapshot of every account, ordered by client id."""
        return [
            AccountSummary.from_account(account)
            for account in sorted(self.account_repo.iter_accounts(), key=lambda a: a.client)
        ]


# Factory function for dependency injection
def get_transaction_service(
    settings: Optional[Settings] = None,
    account_repo: Optional[AccountRepository] = None,
    dispute_ledger: Optional[DisputeLedger] = None,
) -> TransactionService:
    return TransactionService(
        account_repo if account_repo is not None else get_account_repository(),
        dispute_ledger if dispute_ledger is not None else get_dispute_ledger(),
        lock_blocks_disputes=settings.lock_blocks_disputes if settings is not None else False,
    )
