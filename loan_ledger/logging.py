"""Logging for loan-ledger.

Ledger operations tag their records with the loan, payment and client
they touch. ``ledger_context`` builds the ``extra`` mapping for a log
call, and both formatters render those ids so a single loan can be
followed through the log.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from loan_ledger.exceptions import ConfigurationError

LEDGER_FIELDS = ("loan_id", "payment_id", "client_id")

FORMAT_TYPES = ("standard", "json")

QUIET_LOGGERS = ("confluent_kafka", "psycopg", "faker")


def ledger_context(
    loan_id: str | None = None,
    payment_id: str | None = None,
    client_id: str | None = None,
) -> dict[str, dict[str, str]]:
    """Build the ``extra`` argument for a ledger log call.

    Example
    -------
    >>> logger.info("Loan %s settled", loan_id, extra=ledger_context(loan_id))
    """
    ids = {"loan_id": loan_id, "payment_id": payment_id, "client_id": client_id}
    return {"extra": {key: value for key, value in ids.items() if value is not None}}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "extra", None) or {})


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: TextIO | None = None,
) -> None:
    """Configure logging for loan-ledger.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    format_type : str
        Format type: "standard" or "json".
    stream : TextIO, optional
        Where records are written. Defaults to stdout.

    Raises
    ------
    ConfigurationError
        If ``format_type`` is not one of ``FORMAT_TYPES``.
    """
    if format_type not in FORMAT_TYPES:
        raise ConfigurationError(
            f"Unknown log format {format_type!r}, expected one of {FORMAT_TYPES}"
        )
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter: logging.Formatter
    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = LedgerFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("loan_ledger").setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LedgerFormatter(logging.Formatter):
    """Plain-text formatter that appends the ledger ids of a record."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        tags = " ".join(f"{key}={context[key]}" for key in LEDGER_FIELDS if key in context)
        if not tags:
            return line
        # Keep the tags on the message line, ahead of any traceback
        head, sep, tail = line.partition("\n")
        return f"{head} [{tags}]{sep}{tail}"


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Ledger ids come first after the standard keys. Any other context is
    merged in after them.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = _record_context(record)
        for key in LEDGER_FIELDS:
            if key in context:
                log_data[key] = context.pop(key)
        log_data.update(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)
