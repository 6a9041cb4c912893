from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum


class Provenance(str, Enum):
    ORIGINAL = 'Original'
    MANUAL_ADDED = 'Manual_added'
    MANUAL_EDITED = 'Manual_edited'
    MANUAL_VERIFIED = 'Manual_verified'


EDITABLE_FIELDS: tuple[str, ...] = (
    'category',
    'equipment_type',
    'product_name',
    'product_number',
    'serial_number',
    'tag_id',
    'tag_category',
    'photo_category',
    'serial_pic_url',
    'tag_pic_url',
)

# Changing a catalog field invalidates every field after it in this chain.
CATALOG_CASCADE: tuple[str, ...] = ('category', 'equipment_type', 'product_name', 'product_number')


@dataclass(frozen=True)
class InventoryRecord:
    id: str
    site_id: str
    sheet_source: str | None = None
    category: str | None = None
    equipment_type: str | None = None
    product_name: str | None = None
    product_number: str | None = None
    serial_number: str | None = None
    tag_id: str | None = None
    tag_category: str | None = None
    photo_category: str | None = None
    serial_pic_url: str | None = None
    tag_pic_url: str | None = None
    updated_at: datetime | None = None

    def editable_values(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}

    def with_values(self, **changes) -> InventoryRecord:
        return replace(self, **changes)


RECORD_FIELDS: tuple[str, ...] = tuple(item.name for item in fields(InventoryRecord))


def sort_most_recent_first(records: list[InventoryRecord]) -> list[InventoryRecord]:
    """Order by ``updated_at`` descending; undated records go last, ties keep input order."""
    dated = [record for record in records if record.updated_at is not None]
    undated = [record for record in records if record.updated_at is None]
    dated.sort(key=lambda record: record.updated_at, reverse=True)
    return dated + undated
