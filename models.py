from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer, field_validator, model_validator
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from datetime import datetime
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, ROUND_DOWN, localcontext


RECORD_FIELDS = ("type", "client", "tx", "amount")
CLIENT_ID_MAX = 65535  # u16
TX_ID_MAX = 4294967295  # u32
AMOUNT_QUANTUM = Decimal("0.0001")
# Amounts carry at most 15 integer digits and 4 fractional digits.
AMOUNT_MAX_DIGITS = 19
AMOUNT_LIMIT = Decimal(10) ** (AMOUNT_MAX_DIGITS - 4)
# Exact balance arithmetic: 2**32 bounded amounts stay far below 40 digits.
BALANCE_CONTEXT = Context(prec=40, rounding=ROUND_DOWN, traps=[InvalidOperation, Inexact, Overflow, DivisionByZero])


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class DisputeState(str, Enum):
    normal = "normal"
    disputed = "disputed"
    charged_back = "charged_back"


def format_amount(value: Decimal) -> str:
    """Render an amount with exactly four fractional digits."""
    with localcontext(BALANCE_CONTEXT):
        return format(value.quantize(AMOUNT_QUANTUM), "f")


class TransactionRecord(BaseModel):
    """A validated transaction record, built from one raw source row."""

    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction kind")
    client: int = Field(..., ge=0, le=CLIENT_ID_MAX, description="Client identifier")
    tx: int = Field(..., ge=0, le=TX_ID_MAX, description="Transaction identifier")
    amount: Optional[Decimal] = Field(
        None,
        description="Amount for deposit and withdrawal, truncated to 4 decimal places",
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_raw(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            data = dict(zip(RECORD_FIELDS, data))
        if not isinstance(data, Mapping):
            return data

        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            # csv.DictReader files surplus cells under a None key
            if not isinstance(key, str):
                continue
            if isinstance(value, str):
                value = value.strip() or None
            cleaned[key.strip().lower()] = value
        return cleaned

    @field_validator("amount")
    @classmethod
    def truncate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return v
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        if v < 0:
            raise ValueError("amount must not be negative")
        if v >= AMOUNT_LIMIT:
            raise ValueError(f"amount must be below {AMOUNT_LIMIT:f}")
        return v.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)

    @model_validator(mode="after")
    def check_amount_presence(self) -> "TransactionRecord":
        if self.type.carries_amount and self.amount is None:
            raise ValueError(f"{self.type.value} requires an amount")
        if not self.type.carries_amount and self.amount is not None:
            raise ValueError(f"{self.type.value} must not carry an amount")
        return self


class Account(BaseModel):
    client: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @computed_field
    @property
    def total(self) -> Decimal:
        with localcontext(BALANCE_CONTEXT):
            return self.available + self.held


class DisputableDeposit(BaseModel):
    tx: int
    client: int
    amount: Decimal
    state: DisputeState = DisputeState.normal


class AccountSummary(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for withdrawal")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="Available plus held")
    locked: bool = Field(..., description="Whether a chargeback froze the account")

    @field_serializer("available", "held", "total")
    def serialize_amount(self, value: Decimal) -> str:
        return format_amount(value)

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            client=account.client,
            available=account.available,
            held=account.held,
            total=account.total,
            locked=account.locked,
        )


class BatchResponse(BaseModel):
    accounts: List[AccountSummary] = Field(..., description="Final state of every client seen")
    processed: int = Field(..., description="Records applied")
    rejected: int = Field(..., description="Records ignored")
    rejections: Dict[str, int] = Field(default_factory=dict, description="Ignored records per error code")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=datetime.now)
