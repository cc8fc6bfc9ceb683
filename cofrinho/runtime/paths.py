"""Centralized path management for cofrinho.

This module provides a single source of truth for the data directory, the
device-local store and the configuration files.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_data_root() -> Path:
    """Determine the data directory (COFRINHO_HOME or ~/.cofrinho)."""
    env_home = os.environ.get("COFRINHO_HOME", "").strip()
    if env_home:
        return Path(env_home).expanduser()
    return Path("~/.cofrinho").expanduser()


@dataclass
class AppPaths:
    """Container for all application paths.

    All paths are computed relative to the data root, so tests can point the
    whole application at a temporary directory.
    """

    root: Path = field(default_factory=_get_data_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Source code paths ---
    @property
    def src(self) -> Path:
        """Package directory (cofrinho/)."""
        return Path(__file__).resolve().parent.parent

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """User configuration directory."""
        return self.root / "config"

    @property
    def categories(self) -> Path:
        """User override for the default category lists (TOML)."""
        return self.config / "categories.toml"

    @property
    def default_categories(self) -> Path:
        """Bundled default category lists (TOML)."""
        return self.src / "config" / "categories.toml"

    @property
    def firebase_credentials(self) -> Path:
        """Service-account JSON used for authenticated sessions."""
        env_path = os.environ.get("COFRINHO_FIREBASE_CREDENTIALS", "").strip()
        if env_path:
            return Path(env_path).expanduser()
        return self.config / "firebase.json"

    # --- Device-local store ---
    @property
    def local_store(self) -> Path:
        """Directory holding the JSON key files of guest sessions."""
        return self.root / "local"

    # --- Interchange ---
    @property
    def exports(self) -> Path:
        """Default directory for CSV backups."""
        return self.root / "exports"


_paths: AppPaths | None = None


def get_paths() -> AppPaths:
    """Get the singleton AppPaths instance."""
    global _paths
    if _paths is None:
        _paths = AppPaths()
    return _paths


def set_data_root(root: Path) -> AppPaths:
    """Point the singleton at another data root (used by the CLI and tests)."""
    global _paths
    _paths = AppPaths(root=root)
    return _paths
