"""Category registry: two ordered label lists (income and expense)."""

from __future__ import annotations

from dataclasses import dataclass, field

from cofrinho.domain.models import Settings, TransactionType

FALLBACK_CATEGORY = "Outros"

DEFAULT_INCOME_CATEGORIES: tuple[str, ...] = ("Salário", "Investimentos", "Presente", "Outros")
DEFAULT_EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Alimentação",
    "Mercado",
    "Transporte",
    "Moradia",
    "Lazer",
    "Saúde",
    "Educação",
    "Compras",
    "Outros",
)

# Shorter labels are treated as noise when resolving imported categories.
MIN_NEW_CATEGORY_LENGTH = 3


@dataclass
class CategoryRegistry:
    """Ordered, case-insensitively unique category labels per transaction type.

    Matching is case-insensitive everywhere (``find``, ``add`` and the import
    resolver); the stored casing is the one that was registered first.
    """

    income: list[str] = field(default_factory=lambda: list(DEFAULT_INCOME_CATEGORIES))
    expense: list[str] = field(default_factory=lambda: list(DEFAULT_EXPENSE_CATEGORIES))

    def _list(self, txn_type: TransactionType) -> list[str]:
        return self.income if txn_type == "income" else self.expense

    def labels(self, txn_type: TransactionType) -> list[str]:
        return list(self._list(txn_type))

    def find(self, txn_type: TransactionType, label: str) -> str | None:
        """Return the registered label matching ``label`` ignoring case."""
        needle = label.strip().casefold()
        for existing in self._list(txn_type):
            if existing.casefold() == needle:
                return existing
        return None

    def add(self, txn_type: TransactionType, name: str) -> bool:
        """Append ``name`` unless it is empty or already registered."""
        name = name.strip()
        if not name or self.find(txn_type, name) is not None:
            return False
        self._list(txn_type).append(name)
        return True

    def remove(self, txn_type: TransactionType, name: str) -> bool:
        labels = self._list(txn_type)
        if name not in labels:
            return False
        labels.remove(name)
        return True

    def rename(self, txn_type: TransactionType, old: str, new: str) -> bool:
        """Rename ``old`` in place. Renaming onto another existing label merges them."""
        new = new.strip()
        labels = self._list(txn_type)
        if not new or new == old or old not in labels:
            return False

        existing = self.find(txn_type, new)
        if existing is not None and existing != old:
            labels.remove(old)
        else:
            labels[labels.index(old)] = new
        return True

    def to_settings(self) -> Settings:
        return Settings(income_categories=list(self.income), expense_categories=list(self.expense))

    @classmethod
    def from_settings(cls, settings: Settings, defaults: CategoryRegistry | None = None) -> CategoryRegistry:
        """Build a registry from saved settings, falling back per list to ``defaults``."""
        base = defaults or cls()
        income = settings.income_categories if settings.income_categories is not None else base.income
        expense = settings.expense_categories if settings.expense_categories is not None else base.expense
        registry = cls(income=[], expense=[])
        for label in income:
            registry.add("income", label)
        for label in expense:
            registry.add("expense", label)
        return registry


def resolve_category(registry: CategoryRegistry, txn_type: TransactionType, label: str | None) -> tuple[str, bool]:
    """Resolve an imported label against the registry.

    Returns ``(label, is_new)``. Known labels come back with the registered
    casing; unknown labels longer than two characters are kept and flagged as
    new; everything else falls back to ``Outros``.
    """
    cleaned = (label or "").strip()
    if not cleaned:
        return FALLBACK_CATEGORY, False

    match = registry.find(txn_type, cleaned)
    if match is not None:
        return match, False

    if cleaned != FALLBACK_CATEGORY and len(cleaned) >= MIN_NEW_CATEGORY_LENGTH:
        return cleaned, True
    return FALLBACK_CATEGORY, False
