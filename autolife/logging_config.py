"""
Logging configuration for autolife.

Vendor SDKs and HTTP clients are silenced by default for better CLI output.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LIBRARY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "mcp")


def configure_quiet_mode(quiet: bool = True):
    """
    Suppress verbose library output.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if not quiet:
        return
    warnings.filterwarnings("ignore")
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


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

    for name in ("autolife",) + _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(config_dir):
    """Configure a persistent operations log.

    Writes to {config_dir}/autolife-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose, so provider
    failures and fallbacks can be reviewed after the fact.
    Returns the handler so it can be removed on exit.
    """
    log_path = Path(config_dir) / "autolife-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
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

    app_logger = logging.getLogger("autolife")
    app_logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if app_logger.level == logging.NOTSET or app_logger.level > logging.INFO:
        app_logger.setLevel(logging.INFO)

    return handler
