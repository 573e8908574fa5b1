"""
Unit tests for the catalog diff engine.

These tests verify that:
1. Items are matched by key, never by store id or position
2. Field, price and modifier changes are reported per item
3. A changed key on the same category + name reads as a modification
"""

from decimal import Decimal

from menusync.diff import diff_catalogs, item_checksum
from menusync.models import CatalogSnapshot, MenuItem, MenuItemModifier


def make_item(name: str, price: str = "5.00", category: str = "Drinks", item_id: str = None,
              key: str = None, modifiers=(), **kwargs) -> MenuItem:
    """Helper to create MenuItem objects for testing."""
    return MenuItem(
        key=key or f"{category.lower()}--{name.lower()}",
        id=item_id,
        category=category,
        name_primary=name,
        price=Decimal(price),
        modifiers=tuple(MenuItemModifier(name=n, price=Decimal(p)) for n, p in modifiers),
        **kwargs
    )


def snapshot(*items) -> CatalogSnapshot:
    return CatalogSnapshot(branch_id="branch-1", items=tuple(items))


# =============================================================================
# MATCHING TESTS
# =============================================================================

class TestMatching:
    """Tests for how items are paired between snapshots."""

    def test_identical_catalogs(self):
        before = snapshot(make_item("Cola"), make_item("Water", "2"))
        after = snapshot(make_item("Water", "2"), make_item("Cola"))

        diff = diff_catalogs(before, after)

        assert not diff.has_changes
        assert diff.unchanged_count == 2

    def test_store_ids_are_ignored(self):
        """Clear-then-import assigns new ids to the same items."""
        diff = diff_catalogs(snapshot(make_item("Cola", item_id="a")), snapshot(make_item("Cola", item_id="b")))

        assert not diff.has_changes

    def test_added_and_removed_are_sorted(self):
        before = snapshot(make_item("Water"), make_item("Tea"))
        after = snapshot(make_item("Juice"), make_item("Cola"))

        diff = diff_catalogs(before, after)

        assert diff.added == ["drinks--cola", "drinks--juice"]
        assert diff.removed == ["drinks--tea", "drinks--water"]

    def test_key_change_is_a_modification(self):
        before = snapshot(make_item("Cola", key="old-sku"))
        after = snapshot(make_item("Cola", key="new-sku"))

        diff = diff_catalogs(before, after)

        assert diff.added == [] and diff.removed == []
        assert len(diff.modified) == 1
        change = diff.modified[0].changes[0]
        assert (change.field, change.from_value, change.to_value) == ("key", "old-sku", "new-sku")

    def test_empty_before(self):
        diff = diff_catalogs(snapshot(), snapshot(make_item("Cola")))

        assert diff.added == ["drinks--cola"]
        assert diff.summary() == "1 added, 0 removed, 0 modified, 0 unchanged"


# =============================================================================
# CHANGE DETECTION TESTS
# =============================================================================

class TestChanges:
    """Tests for field-level changes."""

    def test_price_change(self):
        diff = diff_catalogs(snapshot(make_item("Cola", "5")), snapshot(make_item("Cola", "6.50")))

        change = diff.modified[0].changes[0]
        assert change.type == "PRICE_CHANGED"
        assert change.to_dict() == {"type": "PRICE_CHANGED", "field": "price", "from": "5", "to": "6.50"}

    def test_equal_prices_with_different_scale(self):
        diff = diff_catalogs(snapshot(make_item("Cola", "5")), snapshot(make_item("Cola", "5.00")))

        assert not diff.has_changes

    def test_field_change(self):
        before = snapshot(make_item("Cola", status="Available"))
        after = snapshot(make_item("Cola", status="Sold Out"))

        diff = diff_catalogs(before, after)

        assert [(c.type, c.field) for c in diff.modified[0].changes] == [("FIELD_CHANGED", "status")]

    def test_modifier_changes(self):
        before = snapshot(make_item("Burger", modifiers=[("Cheese", "3"), ("Bacon", "4")]))
        after = snapshot(make_item("Burger", modifiers=[("Cheese", "3.50"), ("Egg", "2")]))

        diff = diff_catalogs(before, after)

        types = {(c.type, c.field) for c in diff.modified[0].changes}
        assert types == {
            ("MODIFIER_REMOVED", "Bacon"),
            ("MODIFIER_PRICE_CHANGED", "Cheese"),
            ("MODIFIER_ADDED", "Egg"),
        }

    def test_serializes_to_plain_values(self):
        diff = diff_catalogs(
            snapshot(make_item("Cola", available_meals=("Lunch",))),
            snapshot(make_item("Cola", available_meals=("Lunch", "Dinner"))),
        )

        data = diff.to_dict()

        assert data["modified"][0]["changes"][0]["to"] == ["Lunch", "Dinner"]

    def test_item_checksum_ignores_modifier_order(self):
        a = make_item("Burger", modifiers=[("Cheese", "3"), ("Bacon", "4")])
        b = make_item("Burger", modifiers=[("Bacon", "4"), ("Cheese", "3")])

        assert item_checksum(a) == item_checksum(b)
