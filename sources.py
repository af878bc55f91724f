"""Record sources: lazy readers that yield raw rows without validating them."""

import csv
from pathlib import Path
from typing import Dict, Iterator, Optional, TextIO, Union

from errors import SourceError
from models import RECORD_FIELDS


def iter_csv_records(stream: TextIO) -> Iterator[Dict[str, Optional[str]]]:
    """Yield one dict per CSV row, keyed by the stripped header names.

    Short rows get None for the missing cells; blank lines are skipped.
    """
    reader = csv.reader(stream, skipinitialspace=True)
    header = next(reader, None)
    if header is None:
        return

    fieldnames = [name.strip().lower() for name in header]
    missing = [name for name in RECORD_FIELDS if name not in fieldnames]
    if missing:
        raise SourceError(f"header is missing columns: {', '.join(missing)}")

    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        yield {
            name: row[idx] if idx < len(row) else None
            for idx, name in enumerate(fieldnames)
        }


def read_csv_records(path: Union[str, Path]) -> Iterator[Dict[str, Optional[str]]]:
    try:
        file = open(path, newline="", encoding="utf-8")
    except OSError as e:
        raise SourceError(f"cannot open {path}: {e.strerror}")

    with file:
        try:
            yield from iter_csv_records(file)
        except UnicodeDecodeError as e:
            raise SourceError(f"{path} is not UTF-8: {e.reason}")
