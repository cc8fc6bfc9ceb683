"""Process-wide logging setup.

Every module logs through ``get_logger(__name__)``; records go to stderr
under the ``cofrinho`` namespace so CLI output on stdout stays clean.

Environment variables:
    COFRINHO_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO

The HTTP and Firebase client libraries log every request at INFO. Their
loggers are held at WARNING unless cofrinho itself runs at DEBUG.
"""

import logging
import os
import sys

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

ROOT_LOGGER_NAME = "cofrinho"
NOISY_LIBRARY_LOGGERS = ("httpx", "httpcore", "google.auth", "google.api_core", "urllib3")

_logging_configured = False


def _level_from_env() -> int:
    name = os.environ.get("COFRINHO_LOG_LEVEL", "").strip().upper()
    if name == "WARN":
        name = "WARNING"
    return logging.getLevelNamesMapping().get(name, DEFAULT_LOG_LEVEL)


def _formatter(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT)


def _tune_libraries(level: int) -> None:
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def configure_logging(level: int | None = None) -> None:
    """Attach the stderr handler to the ``cofrinho`` logger (once per process).

    Args:
        level: Explicit level; None reads COFRINHO_LOG_LEVEL.
    """
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(level))

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    _tune_libraries(level)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` inside the ``cofrinho`` namespace."""
    configure_logging()

    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: int) -> None:
    """Change the level at runtime (``cofrinho -v`` switches to DEBUG)."""
    configure_logging(level)
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        handler.setFormatter(_formatter(level))
    _tune_libraries(level)
