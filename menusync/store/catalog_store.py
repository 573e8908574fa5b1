"""
Catalog store interface.

The relational store is an external collaborator. This module defines the
commands the engine issues against it; concrete clients implement them.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..models import Branch, CatalogSnapshot, MenuCategory, MenuItem, MenuItemModifier


class CatalogStore:
    """
    Abstract catalog store interface.

    Implement this interface with your actual database client. Every method
    is a single command; the engine never assumes that two commands can be
    rolled back together.
    """

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    def list_branches(self) -> List[Branch]:
        """Return all branches, in store order."""
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Bulk delete by branch scope (children before parents)
    # -------------------------------------------------------------------------

    def delete_modifiers_for_branch(self, branch_id: str) -> int:
        """
        Delete every modifier attached to an item of the branch.

        Returns:
            Number of modifiers deleted
        """
        raise NotImplementedError

    def delete_items_for_branch(self, branch_id: str) -> int:
        """
        Delete every item of the branch.

        Returns:
            Number of items deleted
        """
        raise NotImplementedError

    def delete_categories_for_branch(self, branch_id: str) -> int:
        """
        Delete every category of the branch.

        Returns:
            Number of categories deleted
        """
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self, branch_id: str) -> List[MenuCategory]:
        """Return the branch's categories."""
        raise NotImplementedError

    def insert_categories(self, branch_id: str, names: Sequence[str]) -> List[MenuCategory]:
        """
        Insert categories with store-generated ids.

        Returns:
            The created categories, in the order of `names`
        """
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def insert_items(self, branch_id: str, items: Sequence[MenuItem]) -> List[MenuItem]:
        """
        Bulk insert items. Each item carries its resolved `category_id`;
        its `id` is ignored and generated by the store.

        Returns:
            The inserted items with store ids, in input order
        """
        raise NotImplementedError

    def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        """
        Point update of one item by store id.

        Raises:
            LookupError: If no item has this id
        """
        raise NotImplementedError

    def delete_item(self, item_id: str) -> None:
        """
        Point delete of one item by store id, modifiers included.

        Raises:
            LookupError: If no item has this id
        """
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Modifiers
    # -------------------------------------------------------------------------

    def delete_modifiers_for_item(self, item_id: str) -> int:
        """
        Delete the modifiers of one item, keeping the item.

        Returns:
            Number of modifiers deleted
        """
        raise NotImplementedError

    def insert_modifiers(self, modifiers: Sequence[MenuItemModifier]) -> List[MenuItemModifier]:
        """
        Bulk insert modifiers. Each carries its parent's `item_id`.

        Returns:
            The inserted modifiers with store ids
        """
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def fetch_catalog(self, branch_id: str) -> CatalogSnapshot:
        """Read the branch's complete catalog (categories, items, modifiers)."""
        raise NotImplementedError

    def close(self) -> None:
        """Release connections. Optional."""


def resolve_branch(store: CatalogStore, branch_id: Optional[str] = None) -> Branch:
    """
    Find the target branch: the given id, or the first branch the store lists.

    Raises:
        LookupError: If the id is unknown or the store has no branches
    """
    branches = store.list_branches()
    if branch_id is None:
        if not branches:
            raise LookupError("No branch found to associate menu with")
        return branches[0]
    for branch in branches:
        if branch.id == branch_id:
            return branch
    raise LookupError(f"Branch {branch_id} not found")
