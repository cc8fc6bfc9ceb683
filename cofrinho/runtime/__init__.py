"""Runtime infrastructure for cofrinho.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), AppPaths
- Default category lists via load_default_categories(), default_registry()

The Gemini client, AI extraction and the web server live in their own
modules (``cofrinho.runtime.gemini``, ``.extraction``, ``.server``) and are
imported explicitly.

Usage:
    from cofrinho.runtime import get_logger, get_paths

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.local_store)
"""

from cofrinho.runtime.category_defaults import default_registry, load_default_categories
from cofrinho.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from cofrinho.runtime.paths import AppPaths, get_paths, set_data_root

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Categories
    "load_default_categories",
    "default_registry",
    # Paths
    "get_paths",
    "set_data_root",
    "AppPaths",
]
