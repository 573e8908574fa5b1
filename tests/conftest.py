"""Shared fixtures for the menusync test-suite."""

from decimal import Decimal

import openpyxl
import pytest

from menusync.models import Branch, MenuItemDraft, MenuItemModifier
from menusync.store import InMemoryCatalogStore
from menusync.sync import SyncBroadcaster


BRANCH_ID = "branch-1"


def make_draft(
    category: str = "Drinks",
    name: str = "Cola",
    price: str = "5.00",
    key: str = None,
    row_number: int = None,
    modifiers: tuple = (),
    name_secondary: str = ""
) -> MenuItemDraft:
    """Helper to create MenuItemDraft objects for testing."""
    return MenuItemDraft(
        key=key or f"{category.lower()}--{name.lower().replace(' ', '-')}",
        category=category,
        name_primary=name,
        name_secondary=name_secondary,
        price=Decimal(price),
        modifiers=tuple(MenuItemModifier(name=n, price=Decimal(p)) for n, p in modifiers),
        row_number=row_number,
    )


@pytest.fixture
def store():
    return InMemoryCatalogStore(branches=[Branch(id=BRANCH_ID, name="Main"), Branch(id="branch-2", name="Mall")])


@pytest.fixture
def broadcaster():
    hub = SyncBroadcaster()
    yield hub
    hub.close()


@pytest.fixture
def write_xlsx(tmp_path):
    """Write rows (header first) to an .xlsx file and return its path."""
    def _write(rows, name="menu.xlsx"):
        wb = openpyxl.Workbook()
        ws = wb.active
        for row in rows:
            ws.append(list(row))
        path = tmp_path / name
        wb.save(path)
        return path
    return _write


CONFIG_VARS = (
    "SUPABASE_DB_URL",
    "SUPABASE_DB_HOST",
    "SUPABASE_DB_PORT",
    "SUPABASE_DB_NAME",
    "SUPABASE_DB_USER",
    "SUPABASE_DB_PASSWORD",
    "MENUSYNC_DB_MINCONN",
    "MENUSYNC_DB_MAXCONN",
    "MENUSYNC_DEFAULT_BRANCH",
    "MENUSYNC_CLEAR_BEFORE_IMPORT",
    "MENUSYNC_ALLOW_PARTIAL",
    "MENUSYNC_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every config variable; values loaded from .env files are undone after the test."""
    for name in CONFIG_VARS:
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)
    return monkeypatch
