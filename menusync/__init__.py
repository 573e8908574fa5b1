from .parser import CatalogParser, default_parser
from .normalizer import CatalogNormalizer
from .column_profiler import ColumnProfiler
from .validator import CatalogValidator, ValidationResult, RowError
from .models import Branch, MenuCategory, MenuItem, MenuItemDraft, MenuItemModifier, CatalogSnapshot, SyncEvent
from .exceptions import MenuSyncError, CatalogFileError, PersistenceError, EditStateError
from .ingest import CatalogImporter, ImportPlanner, ImportStatus, ImportOutcome, ImportStep
from .edit_controller import EditController, EditResult
from .sync import GLOBAL_SCOPE, SyncBroadcaster
from .diff import diff_catalogs
from .schema import STANDARD_HEADERS, COLUMN_MAPPINGS

__all__ = [
    "CatalogParser", "default_parser", "CatalogNormalizer", "ColumnProfiler",
    "CatalogValidator", "ValidationResult", "RowError",
    "Branch", "MenuCategory", "MenuItem", "MenuItemDraft", "MenuItemModifier", "CatalogSnapshot", "SyncEvent",
    "MenuSyncError", "CatalogFileError", "PersistenceError", "EditStateError",
    "CatalogImporter", "ImportPlanner", "ImportStatus", "ImportOutcome", "ImportStep",
    "EditController", "EditResult",
    "GLOBAL_SCOPE", "SyncBroadcaster",
    "diff_catalogs",
    "STANDARD_HEADERS", "COLUMN_MAPPINGS",
]
