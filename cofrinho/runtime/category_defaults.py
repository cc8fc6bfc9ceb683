"""Runtime loader for the default category lists."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path

from cofrinho.domain.categories import DEFAULT_EXPENSE_CATEGORIES, DEFAULT_INCOME_CATEGORIES, CategoryRegistry
from cofrinho.runtime.paths import get_paths


def _labels(section: dict, key: str, fallback: tuple[str, ...]) -> tuple[str, ...]:
    value = section.get(key)
    if not isinstance(value, list):
        return fallback
    labels = tuple(str(label).strip() for label in value if str(label).strip())
    return labels or fallback


@lru_cache(maxsize=4)
def load_default_categories(config_path: str | None = None) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """
    Load the default (income, expense) category lists.

    Args:
        config_path: Optional TOML path override. If None, the user override
            in the data directory is tried first, then the bundled defaults.

    Returns:
        Tuple of (income labels, expense labels), preserving file order.
        Lists missing from the file fall back to the built-in defaults.
    """
    if config_path is not None:
        candidates = [Path(config_path)]
    else:
        paths = get_paths()
        candidates = [paths.categories, paths.default_categories]

    for path in candidates:
        if not path.exists():
            continue
        with open(path, "rb") as f:
            config = tomllib.load(f)
        section = config.get("categories", {})
        return (
            _labels(section, "income", DEFAULT_INCOME_CATEGORIES),
            _labels(section, "expense", DEFAULT_EXPENSE_CATEGORIES),
        )

    return DEFAULT_INCOME_CATEGORIES, DEFAULT_EXPENSE_CATEGORIES


def default_registry(config_path: str | None = None) -> CategoryRegistry:
    """Fresh registry seeded with the configured defaults."""
    income, expense = load_default_categories(config_path)
    return CategoryRegistry(income=list(income), expense=list(expense))
