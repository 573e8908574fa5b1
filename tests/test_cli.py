"""
Tests for the menusync command line.

Imports run with --dry-run against the in-memory store; no database is
needed.
"""

import json

import pytest

from menusync.cli import EXIT_FAILURE, EXIT_INVALID_ARGS, EXIT_PARTIAL, EXIT_SUCCESS, main


@pytest.fixture
def run(clean_env, tmp_path):
    """Run the CLI with an env file that does not exist."""
    env_file = str(tmp_path / "none.env")

    def _run(*argv):
        return main(list(argv) + ["--env-file", env_file])
    return _run


@pytest.fixture
def menu_file(tmp_path):
    def _write(*lines, name="menu.csv"):
        path = tmp_path / name
        path.write_text("\n".join(("Category,Item Name,Price",) + lines) + "\n", encoding="utf-8")
        return str(path)
    return _write


# =============================================================================
# CHECK / TEMPLATE TESTS
# =============================================================================

class TestCheckAndTemplate:

    def test_template_then_check(self, run, tmp_path, capsys):
        path = str(tmp_path / "template.xlsx")

        assert run("template", path) == EXIT_SUCCESS
        assert run("check", path) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "Template written to" in out
        assert "-> price" in out

    def test_check_reports_duplicates(self, run, menu_file, capsys):
        code = run("check", menu_file("Drinks,Cola,5", "Drinks,Cola,6"))

        assert code == EXIT_FAILURE
        assert "problems found" in capsys.readouterr().out

    def test_check_missing_columns(self, run, tmp_path, capsys):
        path = tmp_path / "bad.csv"
        path.write_text("Category,Name\nDrinks,Cola\n", encoding="utf-8")

        assert run("check", str(path)) == EXIT_INVALID_ARGS
        assert "Missing required columns" in capsys.readouterr().err

    def test_check_json(self, run, menu_file, capsys):
        run("check", menu_file("Drinks,Cola,5"), "--json")

        data = json.loads(capsys.readouterr().out)
        assert data["validation"]["valid_rows"] == 1


# =============================================================================
# IMPORT TESTS
# =============================================================================

class TestImport:

    def test_dry_run_import(self, run, menu_file, capsys):
        code = run("import", menu_file("Drinks,Cola,5", "Food,Burger,20"), "--dry-run")

        out = capsys.readouterr().out
        assert code == EXIT_SUCCESS
        assert "DRY RUN" in out
        assert "Changes: 2 added" in out

    def test_row_errors_abort(self, run, menu_file):
        assert run("import", menu_file("Drinks,Cola,5", "Drinks,Water,abc"), "--dry-run") == EXIT_FAILURE

    def test_allow_partial(self, run, menu_file):
        code = run("import", menu_file("Drinks,Cola,5", "Drinks,Water,abc"), "--dry-run", "--allow-partial")

        assert code == EXIT_PARTIAL

    def test_branch_and_json(self, run, menu_file, capsys):
        run("import", menu_file("Drinks,Cola,5"), "--dry-run", "--branch", "mall", "--json")

        out = capsys.readouterr().out
        data = json.loads(out[out.index("{"):])
        assert data["branch_id"] == "mall"
        assert data["status"] == "success"
        assert data["sequence"] == 1

    def test_verbose_prints_sync_events(self, run, menu_file, capsys):
        run("import", menu_file("Drinks,Cola,5"), "--dry-run", "-v")

        out = capsys.readouterr().out
        assert "... syncing" in out
        assert "[sync] dry-run #1: 1 items" in out

    def test_import_requires_database(self, run, menu_file, capsys):
        assert run("import", menu_file("Drinks,Cola,5")) == EXIT_INVALID_ARGS
        assert "No database configured" in capsys.readouterr().err

    def test_unreadable_import(self, run, tmp_path):
        path = tmp_path / "menu.pdf"
        path.write_bytes(b"%PDF-1.4")

        assert run("import", str(path), "--dry-run") == EXIT_INVALID_ARGS
