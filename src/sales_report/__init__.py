"""Per-seller sales reporting: revenue, profit, top products, and bonuses.

Importing the package sets up the shared ``sales_report`` logger. Records go
to stderr and, when the directory is writable, to ``.logs/sales_report.log``
at the project root. The CLI's ``--verbose`` flag calls :func:`set_verbosity`.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / ".logs"
LOG_FILE = LOG_DIR / "sales_report.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s | %(message)s"
LOG_MAX_BYTES = 512_000
LOG_BACKUPS = 3


def _log_file_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOG_FILE, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
    except OSError as exc:
        sys.stderr.write(f"sales_report: logging to stderr only ({LOG_FILE}: {exc})\n")
        return None
    handler.setFormatter(formatter)
    return handler


def _configure_logging() -> logging.Logger:
    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    for handler in (stderr_handler, _log_file_handler(formatter)):
        if handler is not None:
            logger.addHandler(handler)
    return logger


def set_verbosity(verbose: bool) -> None:
    """Switch the package logger between INFO and DEBUG output."""

    log.setLevel(logging.DEBUG if verbose else logging.INFO)


log = _configure_logging()
