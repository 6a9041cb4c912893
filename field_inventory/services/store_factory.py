from __future__ import annotations

from functools import lru_cache

from field_inventory.config import settings
from field_inventory.services.database_inventory_store import DatabaseInventoryStore
from field_inventory.services.inventory_store import InventoryStore
from field_inventory.services.mock_inventory_store import MockInventoryStore


@lru_cache(maxsize=1)
def get_inventory_store() -> InventoryStore:
    store = settings.inventory_store.strip().lower()
    if store == 'database':
        return DatabaseInventoryStore()
    return MockInventoryStore()
