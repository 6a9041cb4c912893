from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from field_inventory.services.catalog_index import CatalogEntry
from field_inventory.services.records import InventoryRecord
from field_inventory.services.requirement_gate import CategoryRequirement


class StoreError(ValueError):
    pass


@dataclass(frozen=True)
class SiteSuggestion:
    site_id_canonical: str
    site_digits: str
    row_count: int


class InventoryStore(Protocol):
    def load_catalog_entries(self) -> list[CatalogEntry]: ...

    def load_category_requirements(self, site_id: str) -> list[CategoryRequirement]: ...

    def load_records(self, site_id: str) -> list[InventoryRecord]: ...

    def commit_insert(self, record: InventoryRecord) -> InventoryRecord: ...

    def commit_update(self, record_id: str, patch: dict[str, str | None]) -> None: ...

    def search_sites(self, query: str, *, limit: int) -> list[SiteSuggestion]: ...

    def load_tag_categories(self) -> list[str]: ...

    def load_photo_categories(self) -> list[str]: ...
