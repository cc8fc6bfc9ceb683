"""Application workflows: session state, imports, scans and the advisor."""

from cofrinho.application.session import (
    ActionResult,
    AddCategory,
    ClearAll,
    DeleteTransaction,
    RemoveCategory,
    RenameCategory,
    SaveBatch,
    SaveMarketReceipt,
    SaveTransaction,
    SessionStore,
    SetTheme,
    active_user,
    open_active_session,
    open_session,
    set_active_user,
)

__all__ = [
    "ActionResult",
    "AddCategory",
    "ClearAll",
    "DeleteTransaction",
    "RemoveCategory",
    "RenameCategory",
    "SaveBatch",
    "SaveMarketReceipt",
    "SaveTransaction",
    "SessionStore",
    "SetTheme",
    "active_user",
    "open_active_session",
    "open_session",
    "set_active_user",
]
