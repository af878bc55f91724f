from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, FrozenSet, Iterator, Optional
from decimal import Decimal, Inexact, localcontext

from errors import (
    AmountOverflowError,
    DuplicateTransactionError,
    IllegalDisputeTransitionError,
    InsufficientFundsError,
    InvalidDisputeReferenceError,
    UnknownAccountStateError,
)
from models import BALANCE_CONTEXT, Account, DisputableDeposit, DisputeState


@contextmanager
def exact_arithmetic(account: Account) -> Iterator[None]:
    with localcontext(BALANCE_CONTEXT):
        try:
            yield
        except Inexact:
            raise AmountOverflowError("balance exceeds exact precision", client=account.client)


class AccountRepository(ABC):
    """Account Store: owns every balance mutation.

    Subclasses provide storage; the mutation rules below are shared.
    """

    @abstractmethod
    def get_account(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client was never seen."""
        pass

    @abstractmethod
    def get_or_create_account(self, client_id: int) -> Account:
        """Get account, creating an empty unlocked one for a new client."""
        pass

    @abstractmethod
    def iter_accounts(self) -> Iterator[Account]:
        """Iterate over every account, in no particular order."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass

    def deposit(self, account: Account, amount: Decimal) -> None:
        if account.locked:
            raise UnknownAccountStateError("account is locked", client=account.client)
        with exact_arithmetic(account):
            available = account.available + amount
        account.available = available

    def withdraw(self, account: Account, amount: Decimal) -> None:
        if account.locked:
            raise UnknownAccountStateError("account is locked", client=account.client)
        if account.available < amount:
            raise InsufficientFundsError(
                f"available {account.available} is less than {amount}", client=account.client
            )
        with exact_arithmetic(account):
            available = account.available - amount
        account.available = available

    def hold(self, account: Account, amount: Decimal) -> None:
        # available may go negative when the deposit was already withdrawn
        with exact_arithmetic(account):
            available, held = account.available - amount, account.held + amount
        account.available, account.held = available, held

    def release(self, account: Account, amount: Decimal) -> None:
        with exact_arithmetic(account):
            available, held = account.available + amount, account.held - amount
        account.available, account.held = available, held

    def charge_back(self, account: Account, amount: Decimal) -> None:
        with exact_arithmetic(account):
            held = account.held - amount
        account.held = held
        account.locked = True


class DisputeLedger(ABC):
    """Dispute Ledger: the disputable deposits, keyed by transaction id."""

    # Legal dispute lifecycle moves; charged_back is terminal.
    TRANSITIONS: Dict[DisputeState, FrozenSet[DisputeState]] = {
        DisputeState.normal: frozenset({DisputeState.disputed}),
        DisputeState.disputed: frozenset({DisputeState.normal, DisputeState.charged_back}),
        DisputeState.charged_back: frozenset(),
    }

    @abstractmethod
    def record_deposit(self, tx_id: int, client_id: int, amount: Decimal) -> DisputableDeposit:
        """Store a new deposit. Raises DuplicateTransactionError if tx_id is taken."""
        pass

    @abstractmethod
    def lookup(self, tx_id: int) -> Optional[DisputableDeposit]:
        """Get deposit entry. Returns None for unknown or non-deposit ids."""
        pass

    @abstractmethod
    def get_deposits_count(self) -> int:
        """Get total number of stored deposits."""
        pass

    def check_transition(self, tx_id: int, state: DisputeState) -> DisputableDeposit:
        """Return the deposit if it may move to state, without moving it."""
        deposit = self.lookup(tx_id)
        if deposit is None:
            raise InvalidDisputeReferenceError(f"no deposit to move to {state.value}", tx=tx_id)
        if state not in self.TRANSITIONS[deposit.state]:
            raise IllegalDisputeTransitionError(
                f"cannot move from {deposit.state.value} to {state.value}",
                client=deposit.client,
                tx=tx_id,
            )
        return deposit

    def transition(self, tx_id: int, state: DisputeState) -> DisputableDeposit:
        deposit = self.check_transition(tx_id, state)
        deposit.state = state
        return deposit


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_account(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    def get_or_create_account(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = self.accounts[client_id] = Account(client=client_id)
        return account

    def iter_accounts(self) -> Iterator[Account]:
        return iter(self.accounts.values())

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryDisputeLedger(DisputeLedger):
    def __init__(self):
        self.deposits: Dict[int, DisputableDeposit] = {}

    def record_deposit(self, tx_id: int, client_id: int, amount: Decimal) -> DisputableDeposit:
        if tx_id in self.deposits:
            raise DuplicateTransactionError("deposit duplicates existing tx id", client=client_id, tx=tx_id)
        deposit = self.deposits[tx_id] = DisputableDeposit(tx=tx_id, client=client_id, amount=amount)
        return deposit

    def lookup(self, tx_id: int) -> Optional[DisputableDeposit]:
        return self.deposits.get(tx_id)

    def get_deposits_count(self) -> int:
        return len(self.deposits)


def get_account_repository() -> AccountRepository:
    return InMemoryAccountRepository()


def get_dispute_ledger() -> DisputeLedger:
    return InMemoryDisputeLedger()
