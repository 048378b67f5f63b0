"""
Logging configuration for keepsake.

Library code only creates module loggers; the CLI decides where output goes.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_FILENAME = "keepsake-ops.log"


def configure_quiet_mode(quiet: bool = True):
    """Show only warnings and errors from keepsake on stderr."""
    logger = logging.getLogger("keepsake")
    if quiet:
        warnings.filterwarnings("ignore")
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.INFO)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("keepsake").setLevel(logging.DEBUG)


def configure_ops_log(storage_root):
    """Configure a persistent operations log inside the history storage root.

    Writes to {storage_root}/keepsake-ops.log using a rotating file handler
    (1MB max, 3 backups). The storage root's .gitignore already covers it.
    Returns the handler so it can be removed again.
    """
    root = Path(storage_root)
    root.mkdir(parents=True, exist_ok=True)
    log_path = (root / OPS_LOG_FILENAME).resolve()

    logger = logging.getLogger("keepsake")
    for existing in logger.handlers:
        if isinstance(existing, RotatingFileHandler) and existing.baseFilename == str(log_path):
            return existing

    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    logger.addHandler(handler)
    # Let INFO through to the file even in quiet mode
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)

    return handler
