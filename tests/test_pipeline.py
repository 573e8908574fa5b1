"""
End-to-end tests for the import pipeline.

These tests verify that:
1. Status moves idle -> parsing -> syncing -> success | error
2. Row errors abort the import unless partial batches are allowed
3. A committed import is broadcast to the branch scope with a diff
4. Whole-file failures are reported once, before the store is touched
"""

import pytest

from menusync.exceptions import CatalogFileError
from menusync.ingest import CatalogImporter, ImportStatus
from menusync.ingest.import_planner import ImportOutcome
from menusync.store import InMemoryCatalogStore
from menusync.sync import GLOBAL_SCOPE

from conftest import BRANCH_ID


def csv_bytes(*lines) -> bytes:
    return ("\n".join(("Category,Item Name,Price",) + lines) + "\n").encode("utf-8")


class Listener:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def importer(store, broadcaster, statuses):
    return CatalogImporter(store, broadcaster=broadcaster, on_status=statuses.append)


# =============================================================================
# SUCCESSFUL IMPORT TESTS
# =============================================================================

class TestImportFile:
    """Tests for complete file imports."""

    def test_status_transitions_on_success(self, importer, statuses):
        assert importer.status == ImportStatus.IDLE

        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv")

        assert report.succeeded
        assert statuses == [ImportStatus.PARSING, ImportStatus.SYNCING, ImportStatus.SUCCESS]
        assert importer.status == ImportStatus.SUCCESS

    def test_defaults_to_first_branch(self, importer, store):
        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv")

        assert report.branch_id == BRANCH_ID
        assert len(store.fetch_catalog(BRANCH_ID).items) == 1

    def test_clear_replaces_existing_catalog(self, importer, store):
        importer.import_file(csv_bytes("Old,Tea,1", "Old,Coffee,2", "Old,Juice,3"), file_name="menu.csv")

        report = importer.import_file(
            csv_bytes("Drinks,Cola,5", "Drinks,Water,2", "Food,Burger,20"),
            file_name="menu.csv",
            clear=True,
        )

        snapshot = store.fetch_catalog(BRANCH_ID)
        assert report.succeeded
        assert len(snapshot.items) == 3
        assert len(snapshot.categories) == 2
        assert snapshot.find("old--tea") is None
        assert sorted(report.result.diff.removed) == ["old--coffee", "old--juice", "old--tea"]
        assert len(report.result.diff.added) == 3

    def test_reimport_without_clear_updates_in_place(self, importer, store):
        importer.import_file(csv_bytes("Drinks,Cola,5", "Drinks,Tea,3"), file_name="menu.csv")

        report = importer.import_file(csv_bytes("Drinks,Cola,6", "Drinks,Tea,3"), file_name="menu.csv")

        snapshot = store.fetch_catalog(BRANCH_ID)
        assert report.succeeded
        assert report.result.items_updated == 2
        assert sorted(i.key for i in snapshot.items) == ["drinks--cola", "drinks--tea"]
        assert [c.key for c in report.result.diff.modified] == ["drinks--cola"]

    def test_commit_is_broadcast_to_branch(self, importer, broadcaster):
        branch_listener = Listener()
        global_listener = Listener()
        other_branch = Listener()
        broadcaster.subscribe(BRANCH_ID, branch_listener)
        broadcaster.subscribe(GLOBAL_SCOPE, global_listener)
        broadcaster.subscribe("branch-2", other_branch)

        report = importer.import_file(csv_bytes("Drinks,Cola,5", "Drinks,Water,2"), file_name="menu.csv")
        broadcaster.flush(timeout=5)

        assert report.event.scope == BRANCH_ID
        assert len(branch_listener.events) == 1
        assert len(branch_listener.events[0].payload.items) == 2
        assert len(global_listener.events) == 1
        assert other_branch.events == []

    def test_explicit_branch(self, importer, store):
        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv", branch_id="branch-2")

        assert report.branch_id == "branch-2"
        assert store.fetch_catalog(BRANCH_ID).items == ()

    def test_report_serializes(self, importer):
        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv")

        data = report.to_dict()

        assert data["status"] == "success"
        assert data["result"]["outcome"] == "committed"
        assert data["validation"]["valid_rows"] == 1


# =============================================================================
# ERROR HANDLING TESTS
# =============================================================================

class TestImportErrors:
    """Tests for aborted and failed imports."""

    def test_duplicate_batch_commits_nothing(self, importer, store, statuses):
        report = importer.import_file(csv_bytes("Drinks,Cola,5", "Drinks,Cola,6"), file_name="menu.csv")

        assert report.status == ImportStatus.ERROR
        assert len(report.validation.batch_errors()) == 1
        assert report.result is None
        assert store.fetch_catalog(BRANCH_ID).items == ()
        assert statuses == [ImportStatus.PARSING, ImportStatus.ERROR]

    def test_row_errors_abort_by_default(self, importer, store):
        report = importer.import_file(csv_bytes("Drinks,Cola,5", "Drinks,Water,-1"), file_name="menu.csv")

        assert report.status == ImportStatus.ERROR
        assert report.validation.errors[0].row_number == 3
        assert store.fetch_catalog(BRANCH_ID).items == ()

    def test_allow_partial_imports_valid_rows(self, importer, store):
        report = importer.import_file(
            csv_bytes("Drinks,Cola,5", "Drinks,Water,-1"),
            file_name="menu.csv",
            allow_partial=True,
        )

        assert report.succeeded
        assert len(report.validation.errors) == 1
        assert [i.name_primary for i in store.fetch_catalog(BRANCH_ID).items] == ["Cola"]

    def test_unreadable_file_reported_once(self, importer, statuses):
        report = importer.import_file(b"Category,Name\nDrinks,Cola\n", file_name="menu.csv")

        assert report.status == ImportStatus.ERROR
        assert isinstance(report.error, CatalogFileError)
        assert report.error.missing_columns == ["price"]
        assert statuses == [ImportStatus.PARSING, ImportStatus.ERROR]

    def test_unknown_branch(self, importer):
        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv", branch_id="nowhere")

        assert report.status == ImportStatus.ERROR
        assert isinstance(report.error, LookupError)

    def test_store_without_branches(self, broadcaster):
        importer = CatalogImporter(InMemoryCatalogStore(), broadcaster=broadcaster)

        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv")

        assert report.status == ImportStatus.ERROR
        assert "No branch" in report.message

    def test_partial_clear_is_not_success_and_not_broadcast(self, store, broadcaster):
        class BrokenInsertStore(InMemoryCatalogStore):
            def insert_items(self, branch_id, items):
                raise ConnectionError("connection lost")

        broken = BrokenInsertStore(store.list_branches())
        CatalogImporter(store).import_file(csv_bytes("Old,Tea,1"), file_name="menu.csv")
        seeded = store.fetch_catalog(BRANCH_ID)
        for category in seeded.categories:
            broken.categories[category.id] = category
        for item in seeded.items:
            broken.items[item.id] = item
            broken.item_branch[item.id] = BRANCH_ID

        listener = Listener()
        broadcaster.subscribe(GLOBAL_SCOPE, listener)
        importer = CatalogImporter(broken, broadcaster=broadcaster)

        report = importer.import_file(csv_bytes("Drinks,Cola,5"), file_name="menu.csv", clear=True)
        broadcaster.flush(timeout=5)

        assert report.status == ImportStatus.ERROR
        assert report.result.outcome == ImportOutcome.PARTIAL_CLEAR
        assert broken.fetch_catalog(BRANCH_ID).items == ()
        assert listener.events == []


# =============================================================================
# CHECK TESTS
# =============================================================================

class TestCheck:
    """check() parses and validates without writing."""

    def test_check_reports_mapping_and_errors(self, importer, store):
        report = importer.check(csv_bytes("Drinks,Cola,5", "Drinks,Water,abc"), file_name="menu.csv")

        assert report.status == ImportStatus.ERROR
        assert report.mapping["mapped"]["price"] == ["Price"]
        assert len(report.validation.errors) == 1
        assert store.fetch_catalog(BRANCH_ID).items == ()

    def test_check_raises_for_unusable_file(self, importer):
        with pytest.raises(CatalogFileError):
            importer.check(b"", file_name="menu.csv")
