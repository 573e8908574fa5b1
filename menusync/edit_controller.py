"""
Single-item edit controller.

Apply-then-confirm protocol:
- The next catalog view is computed by a pure function (replace_item,
  remove_item, add_item, add_category) and handed to the caller before the store is
  touched, so the caller can show it immediately.
- The store command runs; its outcome comes back as an EditResult.
- On failure the optimistic view is NOT reverted here. The caller owns
  reconciliation (usually reconcile(), a re-fetch from the store), since
  other edits may have interleaved.
- On success the full updated snapshot is broadcast for the branch scope.

Deletes and creates follow the same shape. The engine performs no operator
confirmation; callers obtain it before calling delete().
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from .exceptions import EditStateError, PersistenceError
from .models import CatalogSnapshot, MenuCategory, MenuItem, MenuItemDraft, MenuItemModifier, SyncEvent
from .store.catalog_store import CatalogStore
from .sync.broadcaster import GLOBAL_SCOPE, SyncBroadcaster
from .validator import parse_meals, parse_price

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
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


# =============================================================================
# PURE SNAPSHOT TRANSITIONS
# =============================================================================

def replace_item(snapshot: CatalogSnapshot, item: MenuItem) -> CatalogSnapshot:
    """Next snapshot with the item of the same key replaced, order kept."""
    if snapshot.find(item.key) is None:
        raise KeyError(item.key)
    return snapshot.with_items(item if i.key == item.key else i for i in snapshot.items)


def remove_item(snapshot: CatalogSnapshot, key: str) -> CatalogSnapshot:
    if snapshot.find(key) is None:
        raise KeyError(key)
    return snapshot.with_items(i for i in snapshot.items if i.key != key)


def add_item(snapshot: CatalogSnapshot, item: MenuItem) -> CatalogSnapshot:
    if snapshot.find(item.key) is not None:
        raise ValueError(f"Item {item.key!r} already in catalog")
    return snapshot.with_items(snapshot.items + (item,))


def add_category(snapshot: CatalogSnapshot, category: MenuCategory) -> CatalogSnapshot:
    """Next snapshot with the category listed. Unchanged if already present."""
    if category in snapshot.categories:
        return snapshot
    return CatalogSnapshot(
        branch_id=snapshot.branch_id,
        items=snapshot.items,
        categories=snapshot.categories + (category,),
    )


# =============================================================================
# DRAFT AND RESULT
# =============================================================================

class EditDraft:
    """
    Mutable working copy of one item.

    Values assigned through set() are coerced the way the import path
    coerces cells: prices go through parse_price, meal lists through
    parse_meals.
    """

    def __init__(self, item: MenuItem):
        self.original = item
        self.fields: Dict[str, Any] = {name: getattr(item, name) for name in EDITABLE_FIELDS}

    def set(self, name: str, value: Any) -> "EditDraft":
        if name not in EDITABLE_FIELDS:
            raise KeyError(f"{name} is not editable")
        if name == "price":
            value = parse_price(format(value, "f") if isinstance(value, Decimal) else str(value))
        elif name == "available_meals" and isinstance(value, str):
            value = parse_meals(value)
        elif name == "available_meals":
            value = tuple(value)
        elif name == "stock":
            value = int(value)
            if value < 0:
                raise ValueError("stock cannot be negative")
        elif isinstance(value, str):
            value = value.strip()
        self.fields[name] = value
        return self

    def update(self, **changes: Any) -> "EditDraft":
        for name, value in changes.items():
            self.set(name, value)
        return self

    def changed_fields(self) -> Dict[str, Any]:
        return {
            name: value for name, value in self.fields.items()
            if getattr(self.original, name) != value
        }

    def to_item(self) -> MenuItem:
        return self.original.with_changes(**self.changed_fields())


@dataclass
class EditResult:
    """
    Outcome of one edit operation.

    `snapshot` is the optimistic view the caller was given. When `committed`
    is False it may not match the store; call reconcile().
    """
    operation: str
    key: str
    snapshot: CatalogSnapshot
    committed: bool
    error: Optional[PersistenceError] = None
    event: Optional[SyncEvent] = None
    changes: Dict[str, Any] = field(default_factory=dict)

    @property
    def needs_reconcile(self) -> bool:
        return not self.committed


# =============================================================================
# CONTROLLER
# =============================================================================

class EditController:
    """
    Applies edits to one catalog item at a time for a single branch session.

    Args:
        store: Catalog store receiving the point updates
        broadcaster: Receives the updated snapshot after each committed edit
        scope: Broadcast scope override; defaults to the snapshot's branch
    """

    def __init__(self, store: CatalogStore, broadcaster: SyncBroadcaster, scope: Optional[str] = None):
        self.store = store
        self.broadcaster = broadcaster
        self.scope = scope
        self.draft: Optional[EditDraft] = None

    def begin_edit(self, item: MenuItem) -> EditDraft:
        """Start editing an item. Replaces any draft already open."""
        self.draft = EditDraft(item)
        return self.draft

    def cancel_edit(self) -> None:
        """Discard the open draft. No store call, no broadcast."""
        if self.draft is not None:
            logger.debug(f"Edit of {self.draft.original.key} cancelled")
        self.draft = None

    def _scope_for(self, snapshot: CatalogSnapshot) -> str:
        return self.scope or snapshot.branch_id or GLOBAL_SCOPE

    def _resolve_category(self, snapshot: CatalogSnapshot, name: str, operation: str, key: str) -> MenuCategory:
        wanted = ' '.join(name.lower().split())
        for category in snapshot.categories:
            if ' '.join(category.name.lower().split()) == wanted:
                return category
        try:
            created = self.store.insert_categories(snapshot.branch_id, [name])
        except Exception as e:
            raise PersistenceError(operation, key, e) from e
        logger.info(f"Category created for {key}: '{name}'")
        return created[0]

    def _fail(self, operation: str, key: str, optimistic: CatalogSnapshot, error: PersistenceError) -> EditResult:
        logger.error(f"Edit {operation} of {key} failed: {error}", exc_info=True)
        return EditResult(operation=operation, key=key, snapshot=optimistic, committed=False, error=error)

    def apply(
        self,
        snapshot: CatalogSnapshot,
        draft: Optional[EditDraft] = None,
        on_optimistic: Optional[Callable[[CatalogSnapshot], None]] = None
    ) -> EditResult:
        """
        Persist a draft.

        Args:
            snapshot: The caller's current catalog view
            draft: Draft to apply; defaults to the one opened by begin_edit()
            on_optimistic: Receives the optimistic snapshot before the store call

        Returns:
            EditResult. Store failures are returned, not raised.

        Raises:
            EditStateError: No draft, the item is not in the snapshot, or it
                has no store id
        """
        draft = draft or self.draft
        if draft is None:
            raise EditStateError("No edit in progress")
        original = draft.original
        if snapshot.find(original.key) is None:
            raise EditStateError(f"No item {original.key} in catalog")
        if original.id is None:
            raise EditStateError(f"Item {original.key} has no store id; it cannot be updated")

        changes = draft.changed_fields()
        if not changes:
            logger.debug(f"Edit of {original.key} has no changes")
            if draft is self.draft:
                self.draft = None
            return EditResult(operation="update", key=original.key, snapshot=snapshot, committed=True)

        item = draft.to_item()
        fields = dict(changes)
        base = snapshot
        created = None
        if "category" in changes:
            # The category must exist before the optimistic view can reference it
            try:
                category = self._resolve_category(snapshot, changes["category"], "update", original.key)
            except PersistenceError as e:
                return self._fail("update", original.key, snapshot, e)
            if category not in snapshot.categories:
                created = category
            fields["category"] = category.name
            fields["category_id"] = category.id
            item = item.with_changes(category=category.name, category_id=category.id)
            base = add_category(snapshot, category)

        optimistic = replace_item(base, item)
        if on_optimistic is not None:
            on_optimistic(optimistic)

        try:
            self.store.update_item(original.id, fields)
        except Exception as e:
            if created is not None:
                logger.warning(f"Category '{created.name}' ({created.id}) was created for {original.key} and is now unused")
            return self._fail("update", original.key, optimistic, PersistenceError("update", original.key, e))

        if draft is self.draft:
            self.draft = None
        logger.info(f"Item {original.key} updated: {', '.join(sorted(changes))}")
        event = self.broadcaster.broadcast(self._scope_for(optimistic), optimistic)
        return EditResult(
            operation="update",
            key=original.key,
            snapshot=optimistic,
            committed=True,
            event=event,
            changes=changes,
        )

    def delete(
        self,
        snapshot: CatalogSnapshot,
        key: str,
        on_optimistic: Optional[Callable[[CatalogSnapshot], None]] = None
    ) -> EditResult:
        """
        Delete one item (its modifiers go with it).

        Raises:
            EditStateError: Unknown key, or the item has no store id
        """
        item = snapshot.find(key)
        if item is None:
            raise EditStateError(f"No item {key} in catalog")
        if item.id is None:
            raise EditStateError(f"Item {key} has no store id; it cannot be deleted")

        optimistic = remove_item(snapshot, key)
        if on_optimistic is not None:
            on_optimistic(optimistic)

        try:
            self.store.delete_item(item.id)
        except Exception as e:
            return self._fail("delete", key, optimistic, PersistenceError("delete", key, e))

        if self.draft is not None and self.draft.original.key == key:
            self.draft = None
        logger.info(f"Item {key} deleted")
        event = self.broadcaster.broadcast(self._scope_for(optimistic), optimistic)
        return EditResult(operation="delete", key=key, snapshot=optimistic, committed=True, event=event)

    def create(
        self,
        snapshot: CatalogSnapshot,
        draft: MenuItemDraft,
        on_optimistic: Optional[Callable[[CatalogSnapshot], None]] = None
    ) -> EditResult:
        """
        Create one item from a validated draft.

        The optimistic snapshot holds the item without a store id; the
        committed snapshot in the result carries the id the store assigned.

        Raises:
            EditStateError: An item with the draft's key already exists
        """
        if snapshot.find(draft.key) is not None:
            raise EditStateError(f"Item {draft.key} already exists")

        pending = MenuItem(
            key=draft.key,
            id=None,
            category=draft.category,
            name_primary=draft.name_primary,
            name_secondary=draft.name_secondary,
            price=draft.price,
            subcategory=draft.subcategory,
            description=draft.description,
            available_meals=draft.available_meals,
            cuisine_type=draft.cuisine_type,
            modifiers=draft.modifiers,
        )
        optimistic = add_item(snapshot, pending)
        if on_optimistic is not None:
            on_optimistic(optimistic)

        try:
            category = self._resolve_category(snapshot, draft.category, "create", draft.key)
            pending = pending.with_changes(category=category.name, category_id=category.id)
            try:
                stored = self.store.insert_items(snapshot.branch_id, [pending])[0]
                modifiers = self.store.insert_modifiers([
                    MenuItemModifier(name=m.name, price=m.price, item_id=stored.id)
                    for m in draft.modifiers
                ])
            except Exception as e:
                raise PersistenceError("create", draft.key, e) from e
        except PersistenceError as e:
            return self._fail("create", draft.key, optimistic, e)

        stored = stored.with_changes(modifiers=tuple(modifiers))
        committed = add_category(replace_item(optimistic, stored), category)
        logger.info(f"Item {draft.key} created as {stored.id}")
        event = self.broadcaster.broadcast(self._scope_for(committed), committed)
        return EditResult(operation="create", key=draft.key, snapshot=committed, committed=True, event=event)

    def reconcile(self, branch_id: str) -> CatalogSnapshot:
        """
        Re-fetch the branch catalog from the store, the source of truth.

        Raises:
            PersistenceError: The store read failed
        """
        try:
            snapshot = self.store.fetch_catalog(branch_id)
        except Exception as e:
            raise PersistenceError("reconcile", branch_id, e) from e
        logger.info(f"Reconciled branch {branch_id}: {len(snapshot.items)} items")
        return snapshot
