"""
In-process catalog store.

Backs dry-run imports from the CLI and the test-suite. Rows live in plain
dicts keyed by generated ids, laid out like the relational tables.
"""

import threading
from dataclasses import replace
from typing import Any, Dict, List, Sequence
from uuid import uuid4

from ..models import Branch, CatalogSnapshot, MenuCategory, MenuItem, MenuItemModifier
from .catalog_store import CatalogStore

ITEM_COLUMNS = {
    "category", "category_id", "subcategory", "name_primary", "name_secondary",
    "description", "price", "available_meals", "cuisine_type", "stock", "status",
}


class InMemoryCatalogStore(CatalogStore):
    """CatalogStore kept in memory. Safe to share between threads."""

    def __init__(self, branches: Sequence[Branch] = ()):
        self.branches: Dict[str, Branch] = {b.id: b for b in branches}
        self.categories: Dict[str, MenuCategory] = {}
        # item id -> item (modifiers live in their own table)
        self.items: Dict[str, MenuItem] = {}
        self.item_branch: Dict[str, str] = {}
        self.modifiers: Dict[str, MenuItemModifier] = {}
        self._lock = threading.RLock()

    def add_branch(self, branch_id: str, name: str) -> Branch:
        branch = Branch(id=branch_id, name=name)
        with self._lock:
            self.branches[branch_id] = branch
        return branch

    def list_branches(self) -> List[Branch]:
        with self._lock:
            return list(self.branches.values())

    def delete_modifiers_for_branch(self, branch_id: str) -> int:
        with self._lock:
            doomed = [
                mid for mid, m in self.modifiers.items()
                if self.item_branch.get(m.item_id) == branch_id
            ]
            for mid in doomed:
                del self.modifiers[mid]
            return len(doomed)

    def delete_items_for_branch(self, branch_id: str) -> int:
        with self._lock:
            doomed = [iid for iid, bid in self.item_branch.items() if bid == branch_id]
            for iid in doomed:
                self._drop_item(iid)
            return len(doomed)

    def delete_categories_for_branch(self, branch_id: str) -> int:
        with self._lock:
            doomed = [cid for cid, c in self.categories.items() if c.branch_id == branch_id]
            in_use = {self.items[iid].category_id for iid in self.items}
            if in_use.intersection(doomed):
                raise ValueError("Categories still referenced by items")
            for cid in doomed:
                del self.categories[cid]
            return len(doomed)

    def list_categories(self, branch_id: str) -> List[MenuCategory]:
        with self._lock:
            return [c for c in self.categories.values() if c.branch_id == branch_id]

    def insert_categories(self, branch_id: str, names: Sequence[str]) -> List[MenuCategory]:
        with self._lock:
            created = []
            for name in names:
                category = MenuCategory(id=str(uuid4()), name=name, branch_id=branch_id)
                self.categories[category.id] = category
                created.append(category)
            return created

    def insert_items(self, branch_id: str, items: Sequence[MenuItem]) -> List[MenuItem]:
        with self._lock:
            for item in items:
                category = self.categories.get(item.category_id)
                if category is None or category.branch_id != branch_id:
                    raise ValueError(f"Item {item.key!r} references unknown category {item.category_id}")
            inserted = []
            for item in items:
                stored = replace(item, id=str(uuid4()), modifiers=())
                self.items[stored.id] = stored
                self.item_branch[stored.id] = branch_id
                inserted.append(stored)
            return inserted

    def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            if item_id not in self.items:
                raise LookupError(f"Item {item_id} not found")
            unknown = set(fields) - ITEM_COLUMNS
            if unknown:
                raise ValueError(f"Unknown item columns: {sorted(unknown)}")
            self.items[item_id] = replace(self.items[item_id], **fields)

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            if item_id not in self.items:
                raise LookupError(f"Item {item_id} not found")
            self._drop_item(item_id)

    def _drop_item(self, item_id: str) -> None:
        for mid in [mid for mid, m in self.modifiers.items() if m.item_id == item_id]:
            del self.modifiers[mid]
        del self.items[item_id]
        del self.item_branch[item_id]

    def delete_modifiers_for_item(self, item_id: str) -> int:
        with self._lock:
            doomed = [mid for mid, m in self.modifiers.items() if m.item_id == item_id]
            for mid in doomed:
                del self.modifiers[mid]
            return len(doomed)

    def insert_modifiers(self, modifiers: Sequence[MenuItemModifier]) -> List[MenuItemModifier]:
        with self._lock:
            for modifier in modifiers:
                if modifier.item_id not in self.items:
                    raise ValueError(f"Modifier {modifier.name!r} references unknown item {modifier.item_id}")
            inserted = []
            for modifier in modifiers:
                stored = replace(modifier, id=str(uuid4()))
                self.modifiers[stored.id] = stored
                inserted.append(stored)
            return inserted

    def fetch_catalog(self, branch_id: str) -> CatalogSnapshot:
        with self._lock:
            categories = tuple(self.list_categories(branch_id))
            names = {c.id: c.name for c in categories}
            items = []
            for iid, item in self.items.items():
                if self.item_branch[iid] != branch_id:
                    continue
                modifiers = tuple(m for m in self.modifiers.values() if m.item_id == iid)
                items.append(replace(item, category=names.get(item.category_id, item.category), modifiers=modifiers))
            return CatalogSnapshot(branch_id=branch_id, items=tuple(items), categories=categories)
