"""
Catalog entities and snapshot types.

Entities are frozen dataclasses. A catalog is never mutated in place: every
change (edit, delete, import) produces a new CatalogSnapshot, and the store is
the only durable owner of catalog state.
"""

import hashlib
import json
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_MEALS = ("Lunch", "Dinner")
DEFAULT_CUISINE = "General"
DEFAULT_STOCK = 100
DEFAULT_STATUS = "Available"


@dataclass(frozen=True)
class Branch:
    id: str
    name: str


@dataclass(frozen=True)
class MenuCategory:
    id: str
    name: str
    branch_id: Optional[str] = None


@dataclass(frozen=True)
class MenuItemModifier:
    """An option attached to one item. Dies with its parent item."""
    name: str
    price: Decimal = Decimal("0.00")
    id: Optional[str] = None
    item_id: Optional[str] = None


@dataclass(frozen=True)
class MenuItemDraft:
    """
    A validated, not-yet-persisted item produced by the validator.

    `row_number` is the 1-based spreadsheet row (header is row 1) the draft
    came from, kept so persistence failures can point back at the file.
    """
    key: str
    category: str
    name_primary: str
    price: Decimal
    name_secondary: str = ""
    subcategory: str = ""
    description: str = ""
    available_meals: Tuple[str, ...] = DEFAULT_MEALS
    cuisine_type: str = DEFAULT_CUISINE
    modifiers: Tuple[MenuItemModifier, ...] = ()
    row_number: Optional[int] = None


@dataclass(frozen=True)
class MenuItem:
    """
    A persisted catalog item.

    `key` is the stable natural identifier used for diffing; `id` is the
    store identity and is required for update and delete.
    """
    key: str
    id: Optional[str]
    category: str
    name_primary: str
    price: Decimal
    name_secondary: str = ""
    category_id: Optional[str] = None
    subcategory: str = ""
    description: str = ""
    available_meals: Tuple[str, ...] = DEFAULT_MEALS
    cuisine_type: str = DEFAULT_CUISINE
    stock: int = DEFAULT_STOCK
    status: str = DEFAULT_STATUS
    modifiers: Tuple[MenuItemModifier, ...] = ()

    def with_changes(self, **changes: Any) -> "MenuItem":
        """Return a copy with the given fields replaced. `key` and `id` are immutable."""
        for locked in ("key", "id"):
            if locked in changes and changes[locked] != getattr(self, locked):
                raise ValueError(f"MenuItem.{locked} cannot be changed")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "key": self.key,
            "id": self.id,
            "category": self.category,
            "category_id": self.category_id,
            "subcategory": self.subcategory,
            "name_primary": self.name_primary,
            "name_secondary": self.name_secondary,
            "description": self.description,
            "price": str(self.price),
            "available_meals": list(self.available_meals),
            "cuisine_type": self.cuisine_type,
            "stock": self.stock,
            "status": self.status,
            "modifiers": [
                {"name": m.name, "price": str(m.price)} for m in self.modifiers
            ],
        }


# Fields that carry meaning for receivers. Store ids and timestamps are
# excluded so that re-importing identical data yields an identical checksum.
SEMANTIC_ITEM_FIELDS = (
    "key",
    "category",
    "subcategory",
    "name_primary",
    "name_secondary",
    "description",
    "price",
    "available_meals",
    "cuisine_type",
    "stock",
    "status",
)


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Complete materialized catalog for one branch at one point in time.

    Snapshots are passed by value between the edit controller, the import
    planner and the broadcaster. Item order is the store's order.
    """
    branch_id: Optional[str]
    items: Tuple[MenuItem, ...] = ()
    categories: Tuple[MenuCategory, ...] = ()
    taken_at: float = field(default_factory=time.time)

    def find(self, key: str) -> Optional[MenuItem]:
        for item in self.items:
            if item.key == key:
                return item
        return None

    def category_names(self) -> List[str]:
        """Category names in first-seen order, from categories or items."""
        names = [c.name for c in self.categories]
        for item in self.items:
            if item.category not in names:
                names.append(item.category)
        return names

    def with_items(self, items) -> "CatalogSnapshot":
        return replace(self, items=tuple(items), taken_at=time.time())

    def checksum(self) -> str:
        """
        Deterministic sha256 over the semantic content of the snapshot.

        Two snapshots with the same checksum are interchangeable for a
        receiver, which makes re-delivery of a snapshot a no-op.
        """
        payload = []
        for item in sorted(self.items, key=lambda i: i.key):
            entry = {}
            for name in SEMANTIC_ITEM_FIELDS:
                value = getattr(item, name)
                entry[name] = list(value) if isinstance(value, tuple) else value
            entry["modifiers"] = sorted(
                [m.name, str(m.price)] for m in item.modifiers
            )
            payload.append(entry)
        json_str = json.dumps(
            {"branch_id": self.branch_id, "items": payload},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(json_str.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "taken_at": self.taken_at,
            "categories": [{"id": c.id, "name": c.name} for c in self.categories],
            "items": [i.to_dict() for i in self.items],
        }


@dataclass(frozen=True)
class SyncEvent:
    """
    One broadcast emission. Transient, never persisted.

    `sequence` is monotonic per scope; a receiver that has already applied
    sequence N for a scope may drop any event with sequence <= N.
    """
    scope: str
    payload: CatalogSnapshot
    sequence: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "checksum": self.payload.checksum(),
            "payload": self.payload.to_dict(),
        }
