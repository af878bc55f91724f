"""Command-line entry point: ``payments-engine transactions.csv > accounts.csv``."""

import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

from config import get_settings
from errors import SourceError
from logging_setup import configure_logging
from reports import write_csv_report
from services import get_transaction_service
from sources import read_csv_records

logger = structlog.get_logger()

app = typer.Typer(add_completion=False, help="Replay a transactions CSV and print the final client accounts.")


@app.command()
def run(
    input_path: Path = typer.Argument(..., help="CSV file with type, client, tx, amount columns"),
    lock_blocks_disputes: Optional[bool] = typer.Option(
        None,
        "--lock-blocks-disputes/--no-lock-blocks-disputes",
        help="Refuse dispute, resolve and chargeback on locked accounts",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
) -> None:
    settings = get_settings()
    overrides = {}
    if lock_blocks_disputes is not None:
        overrides["lock_blocks_disputes"] = lock_blocks_disputes
    if log_level is not None:
        overrides["log_level"] = log_level
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level, settings.log_format)

    service = get_transaction_service(settings)
    try:
        service.process_all(read_csv_records(input_path))
    except SourceError as e:
        logger.error("Cannot read transactions", path=str(input_path), error=str(e))
        typer.echo(f"Application error: {e}", err=True)
        raise typer.Exit(code=1)

    write_csv_report(service.summaries(), sys.stdout)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
