"""Error taxonomy for catalog import, edit and sync."""

from typing import Any, List, Optional


class MenuSyncError(Exception):
    """Base class for all menusync errors."""


class CatalogFileError(MenuSyncError, ValueError):
    """
    The whole input is unusable: unreadable file, no adapter for it,
    required columns missing, or no data rows at all.

    This is fatal to an import and reported once, unlike per-row failures
    which are collected as values.
    """

    def __init__(self, message: str, missing_columns: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_columns = list(missing_columns or [])


class PersistenceError(MenuSyncError):
    """
    The store rejected a write or read.

    Attributes:
        step: Which operation failed (an ImportStep value or an edit op name)
        entity: Row number, item key/id or category name the step was working on
        cause: The exception raised by the store
    """

    def __init__(self, step: Any, entity: Any = None, cause: Optional[BaseException] = None):
        self.step = step
        self.entity = entity
        self.cause = cause
        step_name = getattr(step, "value", step)
        message = f"Store failure during {step_name}"
        if entity is not None:
            message += f" ({entity})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class EditStateError(MenuSyncError, RuntimeError):
    """An edit operation was invoked in a state that does not allow it."""
