"""Report emitters for the final account snapshot."""

import csv
from typing import Iterable, TextIO

from models import AccountSummary, format_amount

REPORT_FIELDS = ["client", "available", "held", "total", "locked"]


def write_csv_report(summaries: Iterable[AccountSummary], stream: TextIO) -> None:
    csvwriter = csv.writer(stream, lineterminator="\n")
    csvwriter.writerow(REPORT_FIELDS)
    for summary in summaries:
        csvwriter.writerow([
            summary.client,
            format_amount(summary.available),
            format_amount(summary.held),
            format_amount(summary.total),
            str(summary.locked).lower(),
        ])
