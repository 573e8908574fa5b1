"""Catalog import: transaction planning and the file-to-store pipeline."""

from .import_planner import (
    ImportPlanner,
    ImportStep,
    ImportOutcome,
    ImportResult,
)
from .pipeline import CatalogImporter, ImportStatus, ImportReport

__all__ = [
    "ImportPlanner",
    "ImportStep",
    "ImportOutcome",
    "ImportResult",
    "CatalogImporter",
    "ImportStatus",
    "ImportReport",
]
