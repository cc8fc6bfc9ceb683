"""Shared pytest fixtures for cofrinho tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch

from cofrinho.runtime import paths as paths_module
from cofrinho.runtime.category_defaults import load_default_categories


@pytest.fixture
def data_root(tmp_path: Path, monkeypatch: MonkeyPatch) -> Iterator[Path]:
    """Point the path singleton at a temporary data directory."""
    monkeypatch.setattr(paths_module, "_paths", paths_module.AppPaths(root=tmp_path))
    monkeypatch.delenv("COFRINHO_FIREBASE_CREDENTIALS", raising=False)
    load_default_categories.cache_clear()
    yield tmp_path
    load_default_categories.cache_clear()
