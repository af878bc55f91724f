"""Shared test setup.

Settings are read once and cached, so the environment overrides below must
be in place before any test module imports ``main``.
"""

import os

import pytest

os.environ.setdefault("PAYMENTS_RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("PAYMENTS_LOG_LEVEL", "WARNING")

from repositories import InMemoryAccountRepository, InMemoryDisputeLedger  # noqa: E402
from services import TransactionService  # noqa: E402


@pytest.fixture
def service():
    """A fresh dispatcher with the permissive lock policy."""
    return TransactionService(InMemoryAccountRepository(), InMemoryDisputeLedger())


@pytest.fixture
def strict_service():
    """A dispatcher whose locked accounts also refuse the dispute lifecycle."""
    return TransactionService(
        InMemoryAccountRepository(), InMemoryDisputeLedger(), lock_blocks_disputes=True
    )
