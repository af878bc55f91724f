import io
import pytest
from decimal import Decimal

from errors import SourceError
from models import AccountSummary
from reports import write_csv_report
from sources import iter_csv_records, read_csv_records


class TestCsvSource:
    """Lazy CSV record reading."""

    def test_rows_keyed_by_header(self):
        stream = io.StringIO(
            "type, client, tx, amount\n"
            "deposit, 1, 1, 1.0\n"
            "dispute, 1, 1,\n"
            "resolve,1,1\n"
        )

        rows = list(iter_csv_records(stream))

        assert rows == [
            {"type": "deposit", "client": "1", "tx": "1", "amount": "1.0"},
            {"type": "dispute", "client": "1", "tx": "1", "amount": ""},
            {"type": "resolve", "client": "1", "tx": "1", "amount": None},
        ]

    def test_blank_lines_skipped(self):
        stream = io.StringIO("type,client,tx,amount\n\ndeposit,1,1,2\n   \n")

        assert len(list(iter_csv_records(stream))) == 1

    def test_header_order_respected(self):
        stream = io.StringIO("client,tx,amount,type\n3,4,5.5,withdrawal\n")

        (row,) = iter_csv_records(stream)
        assert row["type"] == "withdrawal"
        assert row["client"] == "3"

    def test_missing_header_columns(self):
        stream = io.StringIO("deposit,1,1,1.0\n")

        with pytest.raises(SourceError, match="type, client, tx, amount"):
            list(iter_csv_records(stream))

    def test_empty_stream(self):
        assert list(iter_csv_records(io.StringIO(""))) == []

    def test_records_are_yielded_lazily(self):
        records = iter_csv_records(io.StringIO("not,a,header\n"))

        with pytest.raises(SourceError):
            next(records)

    def test_read_file(self, tmp_path):
        path = tmp_path / "transactions.csv"
        path.write_text("type,client,tx,amount\ndeposit,2,1,2.0\n")

        assert list(read_csv_records(path)) == [
            {"type": "deposit", "client": "2", "tx": "1", "amount": "2.0"}
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="cannot open"):
            list(read_csv_records(tmp_path / "missing.csv"))

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"type,client,tx,amount\ndeposit,1,1,\xff\xfe\n")

        with pytest.raises(SourceError, match="not UTF-8"):
            list(read_csv_records(path))


class TestCsvReport:
    def test_report_layout(self):
        summaries = [
            AccountSummary(client=1, available=Decimal("1.5"), held=Decimal("0"), total=Decimal("1.5"), locked=False),
            AccountSummary(client=2, available=Decimal("-40"), held=Decimal("50"), total=Decimal("10"), locked=True),
        ]
        buffer = io.StringIO()

        write_csv_report(summaries, buffer)

        assert buffer.getvalue() == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,-40.0000,50.0000,10.0000,true\n"
        )

    def test_empty_report_has_header(self):
        buffer = io.StringIO()

        write_csv_report([], buffer)

        assert buffer.getvalue() == "client,available,held,total,locked\n"
