"""
Supabase Postgres catalog store.

Concrete CatalogStore that talks to the Supabase Postgres instance directly
with psycopg2, not through the REST API keys.

To get your connection string:
- Supabase Dashboard → Project Settings → Database → Connection string
- Use "Session mode" for persistent connections
- Format: postgresql://postgres:[password]@[host]:5432/postgres

Tables used (physical names of the catalog schema):
- branches(id, name)
- menu_categories(id, name_en, branch_id)
- menu_items(id, key, branch_id, category_id, subcategory, name_en, name_ar,
  description, price, stock, status, available_meals, cuisine_type)
- menu_item_modifiers(id, item_id, name, price)

Every method runs as its own committed statement. Nothing here opens a
transaction across methods, matching what the engine expects of a store.
"""

import logging
import os
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from psycopg2.extras import RealDictCursor, execute_values
from psycopg2.pool import SimpleConnectionPool

from ..models import Branch, CatalogSnapshot, MenuCategory, MenuItem, MenuItemModifier
from .catalog_store import CatalogStore

logger = logging.getLogger(__name__)

# MenuItem field -> menu_items column
ITEM_COLUMN_NAMES = {
    "category_id": "category_id",
    "subcategory": "subcategory",
    "name_primary": "name_en",
    "name_secondary": "name_ar",
    "description": "description",
    "price": "price",
    "stock": "stock",
    "status": "status",
    "available_meals": "available_meals",
    "cuisine_type": "cuisine_type",
}


class SupabaseCatalogStore(CatalogStore):
    """
    Supabase Postgres catalog store.

    Connection can be configured via:
    - Environment variables (SUPABASE_DB_URL or individual connection params)
    - Constructor parameters
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        minconn: int = 1,
        maxconn: int = 10
    ):
        """
        Initialize the store. No connection is opened until first use.

        Args:
            db_url: Full database URL. If not provided, checks SUPABASE_DB_URL
                   env var, then builds from individual params or env vars.
            host: Database host (defaults to SUPABASE_DB_HOST env var)
            port: Database port (defaults to SUPABASE_DB_PORT or 5432)
            database: Database name (defaults to SUPABASE_DB_NAME env var)
            user: Database user (defaults to SUPABASE_DB_USER env var)
            password: Database password (defaults to SUPABASE_DB_PASSWORD env var)
            minconn: Minimum connections in pool
            maxconn: Maximum connections in pool
        """
        # Priority: 1) db_url param, 2) SUPABASE_DB_URL env var, 3) individual params/env vars
        if db_url:
            self.db_url = db_url
        elif os.getenv("SUPABASE_DB_URL"):
            self.db_url = os.getenv("SUPABASE_DB_URL")
        else:
            self.db_url = self._build_connection_string(
                host=host or os.getenv("SUPABASE_DB_HOST"),
                port=port or int(os.getenv("SUPABASE_DB_PORT", "5432")),
                database=database or os.getenv("SUPABASE_DB_NAME"),
                user=user or os.getenv("SUPABASE_DB_USER"),
                password=password or os.getenv("SUPABASE_DB_PASSWORD")
            )

        self.minconn = minconn
        self.maxconn = maxconn
        self._pool = None

    @classmethod
    def from_config(cls, config) -> "SupabaseCatalogStore":
        return cls(**config.store_kwargs())

    def _build_connection_string(
        self,
        host: Optional[str],
        port: Optional[int],
        database: Optional[str],
        user: Optional[str],
        password: Optional[str]
    ) -> str:
        """Build PostgreSQL connection string from components."""
        if not all([host, database, user, password]):
            raise ValueError(
                "Missing required connection parameters. Provide db_url or set "
                "SUPABASE_DB_HOST, SUPABASE_DB_NAME, SUPABASE_DB_USER, "
                "SUPABASE_DB_PASSWORD environment variables."
            )

        port = port or 5432
        return f"postgresql://{user}:{password}@{host}:{port}/{database}"

    def _get_connection_pool(self) -> SimpleConnectionPool:
        """Get or create connection pool."""
        if self._pool is None:
            self._pool = SimpleConnectionPool(
                self.minconn,
                self.maxconn,
                dsn=self.db_url
            )
        return self._pool

    def _execute(self, sql: str, params: Any = None, fetch: bool = False, many: Optional[Sequence] = None):
        """
        Run one statement on a pooled connection and commit it.

        Args:
            sql: Statement text
            params: Statement parameters
            fetch: Return all rows (as dicts)
            many: Row tuples for a bulk VALUES insert (psycopg2 execute_values)

        Returns:
            Rows when fetch is set, otherwise the affected row count
        """
        pool = self._get_connection_pool()
        conn = pool.getconn()
        cursor = conn.cursor(cursor_factory=RealDictCursor)
        try:
            if many is not None:
                execute_values(cursor, sql, many)
            else:
                cursor.execute(sql, params)
            result = cursor.fetchall() if fetch else cursor.rowcount
            conn.commit()
            return result
        except Exception as e:
            conn.rollback()
            logger.warning(f"Statement rolled back: {getattr(e, 'pgcode', None) or ''} {e}".strip())
            raise
        finally:
            cursor.close()
            pool.putconn(conn)

    def list_branches(self) -> List[Branch]:
        rows = self._execute("SELECT id, name FROM branches ORDER BY name", fetch=True)
        return [Branch(id=str(r['id']), name=r['name']) for r in rows]

    def delete_modifiers_for_branch(self, branch_id: str) -> int:
        return self._execute("""
            DELETE FROM menu_item_modifiers
            WHERE item_id IN (SELECT id FROM menu_items WHERE branch_id = %s)
        """, (branch_id,))

    def delete_items_for_branch(self, branch_id: str) -> int:
        return self._execute("DELETE FROM menu_items WHERE branch_id = %s", (branch_id,))

    def delete_categories_for_branch(self, branch_id: str) -> int:
        return self._execute("DELETE FROM menu_categories WHERE branch_id = %s", (branch_id,))

    def list_categories(self, branch_id: str) -> List[MenuCategory]:
        rows = self._execute("""
            SELECT id, name_en FROM menu_categories
            WHERE branch_id = %s
            ORDER BY name_en
        """, (branch_id,), fetch=True)
        return [MenuCategory(id=str(r['id']), name=r['name_en'], branch_id=branch_id) for r in rows]

    def insert_categories(self, branch_id: str, names: Sequence[str]) -> List[MenuCategory]:
        if not names:
            return []
        created = [MenuCategory(id=str(uuid4()), name=name, branch_id=branch_id) for name in names]
        self._execute(
            "INSERT INTO menu_categories (id, name_en, branch_id, is_active) VALUES %s",
            many=[(c.id, c.name, branch_id, True) for c in created]
        )
        return created

    def insert_items(self, branch_id: str, items: Sequence[MenuItem]) -> List[MenuItem]:
        if not items:
            return []
        inserted = [
            replace(item, id=str(uuid4()), modifiers=())
            for item in items
        ]
        self._execute("""
            INSERT INTO menu_items (
                id, key, branch_id, category_id, subcategory, name_en, name_ar,
                description, price, stock, status, available_meals, cuisine_type
            ) VALUES %s
        """, many=[
            (
                i.id, i.key, branch_id, i.category_id, i.subcategory, i.name_primary,
                i.name_secondary, i.description, i.price, i.stock, i.status,
                list(i.available_meals), i.cuisine_type,
            )
            for i in inserted
        ])
        return inserted

    def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        columns = []
        values = []
        for name, value in fields.items():
            if name == "category":
                # Category names live in menu_categories; callers pass category_id
                continue
            column = ITEM_COLUMN_NAMES.get(name)
            if column is None:
                raise ValueError(f"Unknown item field: {name}")
            columns.append(f"{column} = %s")
            values.append(list(value) if isinstance(value, tuple) else value)
        if not columns:
            return

        count = self._execute(
            f"UPDATE menu_items SET {', '.join(columns)} WHERE id = %s",
            tuple(values) + (item_id,)
        )
        if count == 0:
            raise LookupError(f"Item {item_id} not found")

    def delete_item(self, item_id: str) -> None:
        self._execute("DELETE FROM menu_item_modifiers WHERE item_id = %s", (item_id,))
        count = self._execute("DELETE FROM menu_items WHERE id = %s", (item_id,))
        if count == 0:
            raise LookupError(f"Item {item_id} not found")

    def delete_modifiers_for_item(self, item_id: str) -> int:
        return self._execute("DELETE FROM menu_item_modifiers WHERE item_id = %s", (item_id,))

    def insert_modifiers(self, modifiers: Sequence[MenuItemModifier]) -> List[MenuItemModifier]:
        if not modifiers:
            return []
        inserted = [
            MenuItemModifier(name=m.name, price=m.price, id=str(uuid4()), item_id=m.item_id)
            for m in modifiers
        ]
        self._execute(
            "INSERT INTO menu_item_modifiers (id, item_id, name, price) VALUES %s",
            many=[(m.id, m.item_id, m.name, m.price) for m in inserted]
        )
        return inserted

    def fetch_catalog(self, branch_id: str) -> CatalogSnapshot:
        categories = self.list_categories(branch_id)
        rows = self._execute("""
            SELECT
                mi.id, mi.key, mi.category_id, mc.name_en AS category,
                mi.subcategory, mi.name_en, mi.name_ar, mi.description,
                mi.price, mi.stock, mi.status, mi.available_meals, mi.cuisine_type
            FROM menu_items mi
            LEFT JOIN menu_categories mc ON mc.id = mi.category_id
            WHERE mi.branch_id = %s
            ORDER BY mc.name_en, mi.name_en
        """, (branch_id,), fetch=True)
        modifier_rows = self._execute("""
            SELECT m.id, m.item_id, m.name, m.price
            FROM menu_item_modifiers m
            JOIN menu_items mi ON mi.id = m.item_id
            WHERE mi.branch_id = %s
        """, (branch_id,), fetch=True)

        modifiers_by_item: Dict[str, List[MenuItemModifier]] = {}
        for r in modifier_rows:
            modifiers_by_item.setdefault(str(r['item_id']), []).append(MenuItemModifier(
                name=r['name'],
                price=Decimal(r['price'] or 0),
                id=str(r['id']),
                item_id=str(r['item_id']),
            ))

        items = []
        for r in rows:
            item_id = str(r['id'])
            items.append(MenuItem(
                key=r['key'] or item_id,
                id=item_id,
                category=r['category'] or 'Unknown',
                category_id=str(r['category_id']) if r['category_id'] else None,
                subcategory=r['subcategory'] or '',
                name_primary=r['name_en'] or '',
                name_secondary=r['name_ar'] or '',
                description=r['description'] or '',
                price=Decimal(r['price'] or 0),
                stock=r['stock'] if r['stock'] is not None else 0,
                status=r['status'] or '',
                available_meals=tuple(r['available_meals'] or ()),
                cuisine_type=r['cuisine_type'] or '',
                modifiers=tuple(modifiers_by_item.get(item_id, ())),
            ))

        return CatalogSnapshot(branch_id=branch_id, items=tuple(items), categories=tuple(categories))

    def close(self):
        """Close the connection pool."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
