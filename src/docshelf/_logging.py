"""Logging configuration for docshelf.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

The log level can be configured via the DOCSHELF_LOG_LEVEL environment variable
(DEBUG, INFO, WARNING, ERROR). INFO is the default.
"""

import logging
import os
import sys

_PACKAGE_LOGGER = "docshelf"


def configure_logging() -> None:
    """Configure logging for the docshelf package.

    Call this once at application startup (cli.py or webapp).
    Subsequent calls are no-ops.
    """
    package_logger = logging.getLogger(_PACKAGE_LOGGER)

    if package_logger.handlers:
        return

    level_name = os.environ.get("DOCSHELF_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))

    package_logger.setLevel(level)
    package_logger.addHandler(handler)

    # Avoid duplicate messages through the root logger
    package_logger.propagate = False


def set_quiet_mode(quiet: bool) -> None:
    """Only let errors through when quiet is set (CLI --quiet)."""
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    level = logging.ERROR if quiet else logging.INFO
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        handler.setLevel(level)
