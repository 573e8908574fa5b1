"""
Import transaction planner.

Writes a validated batch into one branch of the catalog store as an ordered
plan:

1. Clear: modifiers, then items, then categories of the branch, children
   before parents. Without clear, the branch's existing items are matched
   by key instead
2. Resolve or create the categories the batch references (by normalized name)
3. Merge only: update matched items in place and drop their old modifiers
4. Insert the remaining items referencing the resolved category ids
5. Insert modifiers for every updated or inserted item
6. Read the branch catalog back; that snapshot is what gets broadcast

Merging keeps each key unique on the branch: a row whose key already exists
updates that item (stock and status are left alone) instead of inserting a
second one.

The store is not assumed to offer multi-statement rollback. The planner is
best-effort atomic: steps run strictly in order, the first failure stops the
plan, and the result records which step failed, on which entity, and how far
the branch got. A failure after the clear but before any item was inserted
leaves the branch empty and is reported as PARTIAL_CLEAR, never as "no
changes".

Nothing is retried automatically.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import PersistenceError
from ..models import CatalogSnapshot, MenuCategory, MenuItem, MenuItemDraft, MenuItemModifier
from ..store.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class ImportStep(Enum):
    CLEAR_MODIFIERS = "clear_modifiers"
    CLEAR_ITEMS = "clear_items"
    CLEAR_CATEGORIES = "clear_categories"
    MATCH_EXISTING = "match_existing"
    RESOLVE_CATEGORIES = "resolve_categories"
    UPDATE_ITEMS = "update_items"
    INSERT_ITEMS = "insert_items"
    INSERT_MODIFIERS = "insert_modifiers"
    READ_BACK = "read_back"


CLEAR_STEPS = (ImportStep.CLEAR_MODIFIERS, ImportStep.CLEAR_ITEMS, ImportStep.CLEAR_CATEGORIES)


class ImportOutcome(Enum):
    """Final state of the branch after a plan ran."""
    COMMITTED = "committed"             # every step succeeded
    NO_CHANGES = "no_changes"           # failed before anything was written
    PARTIAL_CLEAR = "partial_clear"     # clear ran, no item was inserted
    PARTIAL_IMPORT = "partial_import"   # some categories/items/modifiers were written
    UNVERIFIED = "unverified"           # every write succeeded, read-back failed


@dataclass
class ImportResult:
    """
    Outcome of one import plan.

    `snapshot` is the read-back catalog on COMMITTED and None otherwise.
    `error` carries the failing step, the entity it was working on and the
    store's exception.
    """
    branch_id: str
    outcome: ImportOutcome
    clear: bool = False
    snapshot: Optional[CatalogSnapshot] = None
    error: Optional[PersistenceError] = None
    completed_steps: List[ImportStep] = field(default_factory=list)
    cleared: Dict[str, int] = field(default_factory=dict)
    categories_resolved: int = 0
    categories_created: int = 0
    items_updated: int = 0
    items_inserted: int = 0
    modifiers_inserted: int = 0
    diff: Any = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ImportOutcome.COMMITTED

    @property
    def failed_step(self) -> Optional[ImportStep]:
        return self.error.step if self.error is not None else None

    def summary(self) -> str:
        if self.succeeded:
            return (
                f"Imported {self.items_inserted} items, updated {self.items_updated} "
                f"({self.modifiers_inserted} modifiers) "
                f"into {self.categories_resolved} categories on branch {self.branch_id}"
            )
        return f"Import {self.outcome.value} on branch {self.branch_id}: {self.error}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "outcome": self.outcome.value,
            "clear": self.clear,
            "completed_steps": [s.value for s in self.completed_steps],
            "cleared": dict(self.cleared),
            "categories_resolved": self.categories_resolved,
            "categories_created": self.categories_created,
            "items_updated": self.items_updated,
            "items_inserted": self.items_inserted,
            "modifiers_inserted": self.modifiers_inserted,
            "error": None if self.error is None else {
                "step": getattr(self.error.step, "value", self.error.step),
                "entity": self.error.entity,
                "message": str(self.error),
            },
            "diff": self.diff.to_dict() if self.diff is not None else None,
        }


def normalize_category_name(name: str) -> str:
    return ' '.join(name.lower().split())


def _row_span(drafts: Sequence[MenuItemDraft]) -> str:
    rows = [d.row_number for d in drafts if d.row_number is not None]
    if not rows:
        return f"{len(drafts)} items"
    if min(rows) == max(rows):
        return f"row {rows[0]}"
    return f"rows {min(rows)}-{max(rows)}"


class ImportPlanner:
    """
    Executes import plans against a CatalogStore.

    Items and modifiers are inserted in chunks of `batch_size` so that a
    failing insert can be attributed to a row range.
    """

    def __init__(self, store: CatalogStore, batch_size: int = DEFAULT_BATCH_SIZE, debug: bool = False):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.batch_size = batch_size
        self.debug = debug

    def plan(self, drafts: Sequence[MenuItemDraft], clear: bool = False) -> List[ImportStep]:
        """The ordered steps execute() would run for this batch."""
        steps = list(CLEAR_STEPS) if clear else [ImportStep.MATCH_EXISTING]
        steps.append(ImportStep.RESOLVE_CATEGORIES)
        if not clear:
            steps.append(ImportStep.UPDATE_ITEMS)
        steps.append(ImportStep.INSERT_ITEMS)
        if any(d.modifiers for d in drafts):
            steps.append(ImportStep.INSERT_MODIFIERS)
        steps.append(ImportStep.READ_BACK)
        return steps

    def _run(self, step: ImportStep, entity: Any, func, *args):
        try:
            return func(*args)
        except Exception as e:
            raise PersistenceError(step, entity, e) from e

    def execute(self, drafts: Sequence[MenuItemDraft], branch_id: str, clear: bool = False) -> ImportResult:
        """
        Run the plan for one batch and one branch.

        Never raises for store failures; they are returned in the result.

        Args:
            drafts: Validated drafts (no duplicate keys)
            branch_id: Target branch
            clear: Delete the branch's existing catalog first. Otherwise
                rows whose key is already on the branch update that item

        Returns:
            ImportResult
        """
        result = ImportResult(branch_id=branch_id, outcome=ImportOutcome.COMMITTED, clear=clear)
        logger.info(
            f"Import plan for branch {branch_id}: {len(drafts)} items, "
            f"steps: {', '.join(s.value for s in self.plan(drafts, clear))}"
        )

        try:
            existing: Dict[str, MenuItem] = {}
            if clear:
                self._clear(branch_id, result)
            else:
                existing = self._match_existing(branch_id, result)
            category_ids = self._resolve_categories(branch_id, drafts, result)

            written = []
            if not clear:
                matched = [d for d in drafts if d.key in existing]
                written.extend(self._update_items(matched, existing, category_ids, result))
            fresh = [d for d in drafts if d.key not in existing]
            written.extend(zip(fresh, self._insert_items(branch_id, fresh, category_ids, result)))
            self._insert_modifiers(written, result)

            result.snapshot = self._run(
                ImportStep.READ_BACK, branch_id, self.store.fetch_catalog, branch_id
            )
            result.completed_steps.append(ImportStep.READ_BACK)
        except PersistenceError as e:
            result.error = e
            result.outcome = self._classify_failure(result)
            logger.error(f"Import failed ({result.outcome.value}): {e}", exc_info=True)
            if result.outcome == ImportOutcome.PARTIAL_CLEAR:
                logger.warning(
                    f"Branch {branch_id} was cleared but no items were imported; "
                    f"its catalog is now incomplete"
                )
            return result

        logger.info(result.summary())
        return result

    def _classify_failure(self, result: ImportResult) -> ImportOutcome:
        if result.error.step == ImportStep.READ_BACK:
            return ImportOutcome.UNVERIFIED
        if result.items_inserted or result.items_updated or result.modifiers_inserted:
            return ImportOutcome.PARTIAL_IMPORT
        if any(result.cleared.values()):
            return ImportOutcome.PARTIAL_CLEAR
        if result.categories_created:
            return ImportOutcome.PARTIAL_IMPORT
        return ImportOutcome.NO_CHANGES

    # =========================================================================
    # STEPS
    # =========================================================================

    def _clear(self, branch_id: str, result: ImportResult) -> None:
        for step, func, label in (
            (ImportStep.CLEAR_MODIFIERS, self.store.delete_modifiers_for_branch, "modifiers"),
            (ImportStep.CLEAR_ITEMS, self.store.delete_items_for_branch, "items"),
            (ImportStep.CLEAR_CATEGORIES, self.store.delete_categories_for_branch, "categories"),
        ):
            count = self._run(step, branch_id, func, branch_id)
            result.cleared[label] = count or 0
            result.completed_steps.append(step)

        logger.info(
            f"Cleared branch {branch_id}: {result.cleared['modifiers']} modifiers, "
            f"{result.cleared['items']} items, {result.cleared['categories']} categories"
        )

    def _match_existing(self, branch_id: str, result: ImportResult) -> Dict[str, MenuItem]:
        """Index the branch's current items by key."""
        current = self._run(
            ImportStep.MATCH_EXISTING, branch_id, self.store.fetch_catalog, branch_id
        )
        by_key: Dict[str, MenuItem] = {}
        for item in current.items:
            by_key.setdefault(item.key, item)
        result.completed_steps.append(ImportStep.MATCH_EXISTING)
        logger.info(f"Existing items on branch {branch_id}: {len(by_key)}")
        return by_key

    def _resolve_categories(self, branch_id: str, drafts: Sequence[MenuItemDraft], result: ImportResult) -> Dict[str, MenuCategory]:
        """
        Map every normalized category name in the batch to a store category,
        creating the missing ones in one bulk insert.
        """
        existing = self._run(
            ImportStep.RESOLVE_CATEGORIES, branch_id, self.store.list_categories, branch_id
        )
        by_name: Dict[str, MenuCategory] = {}
        for category in existing:
            by_name.setdefault(normalize_category_name(category.name), category)

        missing: List[str] = []
        seen = set()
        for draft in drafts:
            normalized = normalize_category_name(draft.category)
            if normalized in by_name or normalized in seen:
                continue
            seen.add(normalized)
            missing.append(draft.category)

        if missing:
            created = self._run(
                ImportStep.RESOLVE_CATEGORIES,
                ', '.join(missing),
                self.store.insert_categories,
                branch_id,
                missing
            )
            result.categories_created = len(created)
            for category in created:
                by_name[normalize_category_name(category.name)] = category
                if self.debug:
                    logger.info(f"Category created: '{category.name}' -> {category.id}")

        wanted = {normalize_category_name(d.category) for d in drafts}
        result.categories_resolved = len(wanted)
        result.completed_steps.append(ImportStep.RESOLVE_CATEGORIES)
        logger.info(
            f"Categories resolved: {len(wanted)} "
            f"({result.categories_created} created, {len(wanted) - result.categories_created} reused)"
        )
        return by_name

    def _update_items(
        self,
        drafts: Sequence[MenuItemDraft],
        existing: Dict[str, MenuItem],
        category_ids: Dict[str, MenuCategory],
        result: ImportResult
    ) -> List[Tuple[MenuItemDraft, MenuItem]]:
        """
        Overwrite matched items with the row's values, one point update each.
        Their old modifiers are deleted so the row's list replaces them.
        """
        updated = []
        for draft in drafts:
            item = existing[draft.key]
            category = category_ids[normalize_category_name(draft.category)]
            entity = _row_span([draft])
            self._run(ImportStep.UPDATE_ITEMS, entity, self.store.update_item, item.id, {
                "category": category.name,
                "category_id": category.id,
                "subcategory": draft.subcategory,
                "name_primary": draft.name_primary,
                "name_secondary": draft.name_secondary,
                "description": draft.description,
                "price": draft.price,
                "available_meals": draft.available_meals,
                "cuisine_type": draft.cuisine_type,
            })
            result.items_updated += 1
            if item.modifiers:
                self._run(ImportStep.UPDATE_ITEMS, entity, self.store.delete_modifiers_for_item, item.id)
            updated.append((draft, item))
            if self.debug:
                logger.info(f"Item updated: row {draft.row_number} '{draft.name_primary}' -> {item.id}")

        result.completed_steps.append(ImportStep.UPDATE_ITEMS)
        logger.info(f"Items updated: {result.items_updated}")
        return updated

    def _insert_items(
        self,
        branch_id: str,
        drafts: Sequence[MenuItemDraft],
        category_ids: Dict[str, MenuCategory],
        result: ImportResult
    ) -> List[MenuItem]:
        inserted: List[MenuItem] = []
        for start in range(0, len(drafts), self.batch_size):
            chunk = drafts[start:start + self.batch_size]
            items = []
            for draft in chunk:
                category = category_ids[normalize_category_name(draft.category)]
                items.append(MenuItem(
                    key=draft.key,
                    id=None,
                    category=category.name,
                    category_id=category.id,
                    name_primary=draft.name_primary,
                    name_secondary=draft.name_secondary,
                    price=draft.price,
                    subcategory=draft.subcategory,
                    description=draft.description,
                    available_meals=draft.available_meals,
                    cuisine_type=draft.cuisine_type,
                ))
            stored = self._run(
                ImportStep.INSERT_ITEMS, _row_span(chunk), self.store.insert_items, branch_id, items
            )
            inserted.extend(stored)
            result.items_inserted += len(stored)
            if self.debug:
                for draft, item in zip(chunk, stored):
                    logger.info(f"Item inserted: row {draft.row_number} '{item.name_primary}' -> {item.id}")

        result.completed_steps.append(ImportStep.INSERT_ITEMS)
        logger.info(f"Items inserted: {result.items_inserted}")
        return inserted

    def _insert_modifiers(self, written: Sequence[Tuple[MenuItemDraft, MenuItem]], result: ImportResult) -> None:
        pending = [(d, item) for d, item in written if d.modifiers]
        if not pending:
            return

        for start in range(0, len(pending), self.batch_size):
            chunk = pending[start:start + self.batch_size]
            modifiers = [
                MenuItemModifier(name=m.name, price=m.price, item_id=item.id)
                for draft, item in chunk
                for m in draft.modifiers
            ]
            stored = self._run(
                ImportStep.INSERT_MODIFIERS,
                _row_span([d for d, _ in chunk]),
                self.store.insert_modifiers,
                modifiers
            )
            result.modifiers_inserted += len(stored)

        result.completed_steps.append(ImportStep.INSERT_MODIFIERS)
        logger.info(f"Modifiers inserted: {result.modifiers_inserted}")
