"""
Catalog diff engine for comparing two snapshots of one branch.

Identity-first and checksum-based:
- Items are matched by their stable `key`, never by row position or store id
  (store ids change on every clear-then-import)
- Per-item checksums over semantic fields give cheap change detection
- Field-level diffs are computed only for items whose checksums differ
- Items left unmatched by key are paired by category + primary name before
  being reported as removed/added, so an explicit key change reads as a
  modification
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import SEMANTIC_ITEM_FIELDS, CatalogSnapshot, MenuItem


@dataclass
class FieldChange:
    """
    A single field-level change on one item.

    type is one of FIELD_CHANGED, PRICE_CHANGED, MODIFIER_ADDED,
    MODIFIER_REMOVED, MODIFIER_PRICE_CHANGED.
    """
    type: str
    field: Optional[str]
    from_value: Any
    to_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "field": self.field,
            "from": _jsonable(self.from_value),
            "to": _jsonable(self.to_value),
        }


@dataclass
class ModifiedItem:
    key: str
    changes: List[FieldChange]


@dataclass
class CatalogDiff:
    """Complete diff between two catalog snapshots."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[ModifiedItem] = field(default_factory=list)
    unchanged_count: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    def summary(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.removed)} removed, "
            f"{len(self.modified)} modified, {self.unchanged_count} unchanged"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": [
                {"key": m.key, "changes": [c.to_dict() for c in m.changes]}
                for m in self.modified
            ],
            "unchanged_count": self.unchanged_count,
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def item_checksum(item: MenuItem) -> str:
    """Deterministic checksum over an item's semantic fields and modifiers."""
    payload = {name: _jsonable(getattr(item, name)) for name in SEMANTIC_ITEM_FIELDS if name != "key"}
    payload["modifiers"] = sorted([m.name, str(m.price)] for m in item.modifiers)
    json_str = json.dumps(payload, sort_keys=True)
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()


def _name_key(item: MenuItem) -> Tuple[str, str]:
    return (' '.join(item.category.lower().split()), ' '.join(item.name_primary.lower().split()))


def diff_item(a: MenuItem, b: MenuItem) -> List[FieldChange]:
    """
    Field-level diff between two versions of an item.

    Only called for items whose checksums differ.
    """
    changes = []
    for name in SEMANTIC_ITEM_FIELDS:
        if name == "key":
            continue
        val_a = getattr(a, name)
        val_b = getattr(b, name)
        if val_a != val_b:
            changes.append(FieldChange(
                type="PRICE_CHANGED" if name == "price" else "FIELD_CHANGED",
                field=name,
                from_value=val_a,
                to_value=val_b
            ))

    mods_a = {m.name: m.price for m in a.modifiers}
    mods_b = {m.name: m.price for m in b.modifiers}
    for name in sorted(set(mods_a) | set(mods_b)):
        if name not in mods_a:
            changes.append(FieldChange("MODIFIER_ADDED", name, None, mods_b[name]))
        elif name not in mods_b:
            changes.append(FieldChange("MODIFIER_REMOVED", name, mods_a[name], None))
        elif mods_a[name] != mods_b[name]:
            changes.append(FieldChange("MODIFIER_PRICE_CHANGED", name, mods_a[name], mods_b[name]))

    return changes


def diff_catalogs(before: CatalogSnapshot, after: CatalogSnapshot) -> CatalogDiff:
    """
    Compare two catalog snapshots.

    Args:
        before: Baseline snapshot
        after: Comparison snapshot

    Returns:
        CatalogDiff with added/removed keys (sorted), modified items and the
        unchanged count. Keys reported for modified items are the `after` keys.
    """
    state_a: Dict[str, MenuItem] = {item.key: item for item in before.items}
    state_b: Dict[str, MenuItem] = {item.key: item for item in after.items}

    # Exact key matches first
    matched_pairs: List[Tuple[MenuItem, MenuItem]] = [
        (state_a[key], state_b[key]) for key in state_a if key in state_b
    ]
    unmatched_a = [item for key, item in state_a.items() if key not in state_b]
    unmatched_b = [item for key, item in state_b.items() if key not in state_a]

    # Then category + name for leftovers, first come first served
    by_name: Dict[Tuple[str, str], List[MenuItem]] = {}
    for item in unmatched_b:
        by_name.setdefault(_name_key(item), []).append(item)

    removed = []
    paired_b = set()
    for item in unmatched_a:
        candidates = by_name.get(_name_key(item))
        if candidates:
            partner = candidates.pop(0)
            paired_b.add(partner.key)
            matched_pairs.append((item, partner))
        else:
            removed.append(item.key)
    added = [item.key for item in unmatched_b if item.key not in paired_b]

    result = CatalogDiff(added=sorted(added), removed=sorted(removed))
    for item_a, item_b in matched_pairs:
        if item_a.key == item_b.key and item_checksum(item_a) == item_checksum(item_b):
            result.unchanged_count += 1
            continue
        changes = diff_item(item_a, item_b)
        if item_a.key != item_b.key:
            changes.insert(0, FieldChange("FIELD_CHANGED", "key", item_a.key, item_b.key))
        if changes:
            result.modified.append(ModifiedItem(key=item_b.key, changes=changes))
        else:
            result.unchanged_count += 1

    result.modified.sort(key=lambda m: m.key)
    return result
