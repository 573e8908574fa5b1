"""
File-to-catalog import pipeline.

uploaded file -> CatalogParser -> CatalogValidator -> ImportPlanner -> store
successful commit -> SyncBroadcaster

Callers follow progress through ImportStatus (idle -> parsing -> syncing ->
success | error) via the `on_status` callback or the `status` attribute,
without depending on internal timing.

An importer is meant for one branch session issuing imports sequentially.
Nothing here locks the branch: two imports racing on the same branch end
with whichever finished last (last-write-wins).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..diff import diff_catalogs
from ..exceptions import CatalogFileError
from ..models import SyncEvent
from ..parser import CatalogParser, default_parser
from ..store.catalog_store import CatalogStore, resolve_branch
from ..sync.broadcaster import SyncBroadcaster
from ..validator import CatalogValidator, ValidationResult
from .import_planner import ImportPlanner, ImportResult

logger = logging.getLogger(__name__)


class ImportStatus(Enum):
    IDLE = "idle"
    PARSING = "parsing"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ImportReport:
    """
    Everything the caller needs after one import attempt.

    `error` holds a fatal problem that stopped the pipeline before or
    outside the planner (unreadable file, unknown branch, row errors with
    partial import disallowed). Persistence failures are on `result.error`.
    """
    status: ImportStatus
    message: str
    branch_id: Optional[str] = None
    mapping: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationResult] = None
    result: Optional[ImportResult] = None
    event: Optional[SyncEvent] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ImportStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        validation = None
        if self.validation is not None:
            validation = {
                "total_rows": self.validation.total_rows,
                "valid_rows": len(self.validation.drafts),
                "errors": [
                    {"row": e.row_number, "rows": list(e.rows), "field": e.field, "reason": e.reason}
                    for e in self.validation.errors
                ],
            }
        return {
            "status": self.status.value,
            "message": self.message,
            "branch_id": self.branch_id,
            "mapping": self.mapping,
            "validation": validation,
            "result": self.result.to_dict() if self.result is not None else None,
            "sequence": self.event.sequence if self.event is not None else None,
        }


class CatalogImporter:
    """
    Runs whole-file imports into one catalog store.

    Args:
        store: Target catalog store
        broadcaster: Receives the read-back snapshot after a committed import
        parser: Defaults to default_parser()
        validator: Defaults to CatalogValidator()
        on_status: Called with each ImportStatus transition
        debug: Enable per-row decision logs in the planner
    """

    def __init__(
        self,
        store: CatalogStore,
        broadcaster: Optional[SyncBroadcaster] = None,
        parser: Optional[CatalogParser] = None,
        validator: Optional[CatalogValidator] = None,
        on_status: Optional[Callable[[ImportStatus], None]] = None,
        debug: bool = False
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.parser = parser or default_parser()
        self.validator = validator or CatalogValidator()
        self.planner = ImportPlanner(store, debug=debug)
        self.on_status = on_status
        self.status = ImportStatus.IDLE

    def _set_status(self, status: ImportStatus) -> None:
        self.status = status
        logger.debug(f"Import status: {status.value}")
        if self.on_status is not None:
            self.on_status(status)

    def _fail(self, message: str, **kwargs) -> ImportReport:
        self._set_status(ImportStatus.ERROR)
        logger.warning(f"Import aborted: {message}")
        return ImportReport(status=ImportStatus.ERROR, message=message, **kwargs)

    def check(self, source, file_name: Optional[str] = None, column_map: Optional[Dict[str, str]] = None) -> ImportReport:
        """
        Parse and validate a file without touching the store.

        Raises:
            CatalogFileError: The file as a whole is unusable
        """
        parsed = self.parser.parse(source, file_name=file_name, column_map=column_map)
        mapping = self.parser.normalizer.get_mapping_report(parsed.headers, parsed.inferred)
        validation = self.validator.validate(parsed)
        status = ImportStatus.ERROR if validation.has_errors else ImportStatus.SUCCESS
        return ImportReport(status=status, message=validation.summary(), mapping=mapping, validation=validation)

    def import_file(
        self,
        source,
        file_name: Optional[str] = None,
        branch_id: Optional[str] = None,
        clear: bool = False,
        allow_partial: bool = False,
        column_map: Optional[Dict[str, str]] = None
    ) -> ImportReport:
        """
        Import a spreadsheet or CSV file into one branch.

        Args:
            source: File path, raw bytes, or binary file object
            file_name: Original name of the upload (picks the adapter for bytes)
            branch_id: Target branch; defaults to the first branch in the store
            clear: Delete the branch's catalog before inserting
            allow_partial: Import the valid rows even when other rows failed
                validation. When False any row error aborts with nothing written.
            column_map: Declared schema, file header -> standard header

        Returns:
            ImportReport. Only programming errors propagate.
        """
        self._set_status(ImportStatus.PARSING)
        try:
            parsed = self.parser.parse(source, file_name=file_name, column_map=column_map)
            mapping = self.parser.normalizer.get_mapping_report(parsed.headers, parsed.inferred)
            validation = self.validator.validate(parsed)
        except CatalogFileError as e:
            return self._fail(str(e), error=e)
        except Exception:
            self._set_status(ImportStatus.ERROR)
            raise

        if validation.has_errors and not allow_partial:
            return self._fail(
                f"{len(validation.errors)} validation errors; nothing was imported",
                mapping=mapping,
                validation=validation,
            )
        if not validation.drafts:
            return self._fail("No valid rows to import", mapping=mapping, validation=validation)

        self._set_status(ImportStatus.SYNCING)
        try:
            branch = resolve_branch(self.store, branch_id)
        except LookupError as e:
            return self._fail(str(e), mapping=mapping, validation=validation, error=e)
        except Exception as e:
            logger.error(f"Listing branches failed: {e}", exc_info=True)
            return self._fail(f"Listing branches failed: {e}", mapping=mapping, validation=validation, error=e)

        try:
            before = self.store.fetch_catalog(branch.id)
        except Exception as e:
            logger.warning(f"Could not read branch {branch.id} before import, no diff will be reported: {e}")
            before = None

        result = self.planner.execute(validation.drafts, branch.id, clear=clear)
        report = ImportReport(
            status=ImportStatus.SUCCESS,
            message=result.summary(),
            branch_id=branch.id,
            mapping=mapping,
            validation=validation,
            result=result,
        )

        if not result.succeeded:
            report.status = ImportStatus.ERROR
            self._set_status(ImportStatus.ERROR)
            return report

        if before is not None:
            result.diff = diff_catalogs(before, result.snapshot)
            logger.info(f"Catalog changes on branch {branch.id}: {result.diff.summary()}")

        if self.broadcaster is not None:
            report.event = self.broadcaster.broadcast(branch.id, result.snapshot)

        self._set_status(ImportStatus.SUCCESS)
        return report
