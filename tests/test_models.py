import pytest
from decimal import Decimal
from pydantic import ValidationError

from models import (
    Account,
    AccountSummary,
    TransactionRecord,
    TransactionType,
    format_amount,
)


class TestTransactionRecord:
    """Validation of raw rows into records."""

    def test_whitespace_stripped(self):
        record = TransactionRecord.model_validate(
            {" type ": "   deposit   ", "client": " 55     ", "tx": "     123 ", "amount": "    17.64  "}
        )

        assert record.type == TransactionType.deposit
        assert record.client == 55
        assert record.tx == 123
        assert record.amount == Decimal("17.64")

    def test_positional_row(self):
        record = TransactionRecord.model_validate(["withdrawal", "1", "2", "1.5"])

        assert record.type == TransactionType.withdrawal
        assert record.amount == Decimal("1.5")

    @pytest.mark.parametrize("amount", ["5.7245462362", "5.72459", "5.72451"])
    def test_extra_decimals_truncated(self, amount):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "1", "tx": "1", "amount": amount}
        )

        assert record.amount == Decimal("5.7245")

    def test_empty_amount_is_absent(self):
        record = TransactionRecord.model_validate(
            {"type": "dispute", "client": "1", "tx": "1", "amount": ""}
        )

        assert record.amount is None

    @pytest.mark.parametrize(
        "row",
        [
            {"type": "deposit", "client": "1", "tx": "1", "amount": "-1"},
            {"type": "withdrawal", "client": "1", "tx": "1", "amount": "-0.01"},
            {"type": "deposit", "client": "1", "tx": "1", "amount": "  13  122   . 99 , 5"},
            {"type": "deposit", "client": "1", "tx": "1", "amount": "NaN"},
            {"type": "deposit", "client": "1", "tx": "1", "amount": "1e40"},
            {"type": "deposit", "client": "1", "tx": "1", "amount": "1000000000000000"},
            {"type": "deposit", "client": "1", "tx": "1", "amount": None},
            {"type": "withdrawal", "client": "1", "tx": "1"},
            {"type": "dispute", "client": "1", "tx": "1", "amount": "1.0"},
            {"type": "chargeback", "client": "1", "tx": "1", "amount": "0"},
            {"type": "bacon", "client": "1", "tx": "1", "amount": "1.0"},
            {"type": "Deposit", "client": "1", "tx": "1", "amount": "1.0"},
            {"type": "deposit", "client": "-1", "tx": "1", "amount": "1.0"},
            {"type": "deposit", "client": "65536", "tx": "1", "amount": "1.0"},
            {"type": "deposit", "client": "invalidclient", "tx": "1", "amount": "1.0"},
            {"type": "deposit", "client": "1", "tx": "-1", "amount": "1.0"},
            {"type": "deposit", "client": "1", "tx": "4294967296", "amount": "1.0"},
            {"type": "deposit", "client": "", "tx": "1", "amount": "1.0"},
        ],
    )
    def test_malformed_rows_rejected(self, row):
        with pytest.raises(ValidationError):
            TransactionRecord.model_validate(row)

    def test_largest_amount_accepted(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "1", "tx": "1", "amount": "999999999999999.99999"}
        )

        assert record.amount == Decimal("999999999999999.9999")

    def test_id_bounds_inclusive(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "65535", "tx": "4294967295", "amount": "1"}
        )

        assert record.client == 65535
        assert record.tx == 4294967295

        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "0", "tx": "0", "amount": "1"}
        )
        assert record.client == 0
        assert record.tx == 0

    def test_surplus_csv_cells_ignored(self):
        record = TransactionRecord.model_validate(
            {"type": "deposit", "client": "1", "tx": "1", "amount": "2", None: ["x"]}
        )

        assert record.amount == Decimal("2")


class TestAccount:
    def test_new_account_is_empty(self):
        account = Account(client=7)

        assert account.available == Decimal("0")
        assert account.held == Decimal("0")
        assert account.total == Decimal("0")
        assert account.locked is False

    def test_total_tracks_fields(self):
        account = Account(client=7)
        account.available += Decimal("3.5")
        account.held += Decimal("1.25")

        assert account.total == Decimal("4.75")


class TestAccountSummary:
    def test_amounts_serialize_with_four_places(self):
        account = Account(client=2, available=Decimal("-40"), held=Decimal("50"))

        data = AccountSummary.from_account(account).model_dump(mode="json")

        assert data == {
            "client": 2,
            "available": "-40.0000",
            "held": "50.0000",
            "total": "10.0000",
            "locked": False,
        }

    def test_format_amount(self):
        assert format_amount(Decimal("1.5")) == "1.5000"
        assert format_amount(Decimal("0")) == "0.0000"
        assert format_amount(Decimal("12.3456")) == "12.3456"
        assert format_amount(Decimal("9" * 30)) == "9" * 30 + ".0000"
