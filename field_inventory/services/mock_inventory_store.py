from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from field_inventory.services.catalog_index import CatalogEntry
from field_inventory.services.inventory_store import SiteSuggestion, StoreError
from field_inventory.services.normalization import clean_text, requirement_site_key, site_digits
from field_inventory.services.records import RECORD_FIELDS, InventoryRecord, Provenance, sort_most_recent_first
from field_inventory.services.requirement_gate import CategoryRequirement

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class MockInventoryStore:
    def __init__(
        self,
        *,
        catalog: list[CatalogEntry] | None = None,
        requirements: dict[str, list[CategoryRequirement]] | None = None,
        records: list[InventoryRecord] | None = None,
        tag_categories: list[str] | None = None,
        photo_categories: list[str] | None = None,
    ) -> None:
        self.catalog = list(catalog) if catalog is not None else [
            CatalogEntry('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-1'),
            CatalogEntry('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-2'),
            CatalogEntry('Enclosure-Active', 'Rectifier', 'RX-48', 'RX-48-100'),
            CatalogEntry('Enclosure-Passive', 'Rack', '19in Rack', 'RK-42U'),
            CatalogEntry('MW-Active', 'ODU', 'Radio 18G', 'ODU-18-A'),
            CatalogEntry('MW-Active', 'IDU', 'Modem 2P', 'IDU-2P'),
            CatalogEntry('MW-Passive', 'Antenna', 'Dish 0.6m', 'ANT-06'),
            CatalogEntry('RAN-Active', 'Baseband', 'BB-5216', 'BB5216-01'),
            CatalogEntry('RAN-Active', 'Radio', 'RRU-4415', 'RRU4415-B3'),
            CatalogEntry('RAN-Passive', 'Antenna', 'Panel 65deg', 'PNL-65-18'),
        ]
        self.requirements = dict(requirements) if requirements is not None else {
            '100': [
                CategoryRequirement('MW-Passive', False, 'No passive MW on this site', 'Parsed from survey'),
                CategoryRequirement('RAN-Active', True, 'RAN equipment mandatory', None),
            ],
        }
        self.records = list(records) if records is not None else [
            InventoryRecord(
                id=str(uuid.UUID(int=index + 1)),
                site_id='W100',
                sheet_source=Provenance.ORIGINAL.value,
                category=category,
                equipment_type=equipment_type,
                product_name=product_name,
                product_number=product_number,
                serial_number=serial,
                tag_id=tag,
                updated_at=_BASE_TIME + timedelta(days=index),
            )
            for index, (category, equipment_type, product_name, product_number, serial, tag) in enumerate(
                [
                    ('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-1', 'SN-1001', 'TAG-1'),
                    ('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-2', 'SN-1001', 'TAG-2'),
                    ('RAN-Active', 'Radio', 'RRU-4415', 'RRU4415-B3', 'SN-2001', 'TAG-3'),
                    ('MW-Active', 'ODU', 'Radio 18G', 'ODU-18-A', None, 'TAG-3'),
                ]
            )
        ]
        self.tag_categories = list(tag_categories) if tag_categories is not None else ['Asset Tag', 'Operator Tag']
        self.photo_categories = list(photo_categories) if photo_categories is not None else ['Serial', 'Tag', 'Both']

    def load_catalog_entries(self) -> list[CatalogEntry]:
        return list(self.catalog)

    def load_category_requirements(self, site_id: str) -> list[CategoryRequirement]:
        return list(self.requirements.get(requirement_site_key(site_id), []))

    def load_records(self, site_id: str) -> list[InventoryRecord]:
        site = clean_text(site_id)
        return sort_most_recent_first([record for record in self.records if record.site_id == site])

    def commit_insert(self, record: InventoryRecord) -> InventoryRecord:
        if not clean_text(record.site_id):
            raise StoreError('Site is required')
        stored = replace(record, id=str(uuid.uuid4()), updated_at=_now())
        self.records.append(stored)
        return stored

    def commit_update(self, record_id: str, patch: dict[str, str | None]) -> None:
        unknown = sorted(set(patch) - set(RECORD_FIELDS))
        if unknown:
            raise StoreError(f'Unknown columns: {", ".join(unknown)}')
        for index, record in enumerate(self.records):
            if record.id == record_id:
                self.records[index] = replace(record, updated_at=_now(), **patch)
                return
        raise StoreError('Inventory row not found')

    def search_sites(self, query: str, *, limit: int) -> list[SiteSuggestion]:
        digits = site_digits(query)
        if not digits:
            return []
        counts: dict[str, int] = {}
        for record in self.records:
            counts[record.site_id] = counts.get(record.site_id, 0) + 1
        suggestions = [
            SiteSuggestion(site_id_canonical=site, site_digits=site_digits(site), row_count=count)
            for site, count in counts.items()
            if site_digits(site).startswith(digits)
        ]
        suggestions.sort(key=lambda suggestion: suggestion.site_digits)
        return suggestions[:limit]

    def load_tag_categories(self) -> list[str]:
        return list(self.tag_categories)

    def load_photo_categories(self) -> list[str]:
        return list(self.photo_categories)
