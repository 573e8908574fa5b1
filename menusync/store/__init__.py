"""Catalog persistence: the store interface and its implementations."""

from .catalog_store import CatalogStore, resolve_branch
from .memory_store import InMemoryCatalogStore

# NOTE: SupabaseCatalogStore is NOT re-exported here so that psycopg2 is only
# imported when a database store is actually used:
#   from menusync.store.supabase_client import SupabaseCatalogStore

__all__ = [
    "CatalogStore",
    "InMemoryCatalogStore",
    "resolve_branch",
]
