"""structlog configuration shared by the CLI and the HTTP app.

Library modules only call ``structlog.get_logger()``; entry points call
``configure_logging`` once at startup. Output goes to stderr so that the
CSV report on stdout stays clean.
"""

import logging
import sys
from typing import IO, Optional

import structlog


def configure_logging(
    level: str = "INFO",
    fmt: str = "json",
    stream: Optional[IO[str]] = None,
) -> None:
    log_level = getattr(logging, level.strip().upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=log_level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
