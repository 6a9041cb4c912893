from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from field_inventory.models import (
    HelperCatalog,
    MainInventory,
    PhotoCategoryHelper,
    SiteCategoryRequirement,
    TagCategoryHelper,
)
from field_inventory.services.audit_service import log_audit
from field_inventory.services.catalog_index import CatalogEntry
from field_inventory.services.inventory_store import SiteSuggestion, StoreError
from field_inventory.services.normalization import clean_text, requirement_site_key, site_digits
from field_inventory.services.records import EDITABLE_FIELDS, InventoryRecord
from field_inventory.services.requirement_gate import CategoryRequirement

logger = logging.getLogger(__name__)

_PATCH_COLUMNS = frozenset(EDITABLE_FIELDS) | {'sheet_source'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset on read.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: MainInventory) -> InventoryRecord:
    return InventoryRecord(
        id=str(row.id),
        site_id=row.site_id_canonical,
        sheet_source=row.sheet_source,
        category=row.category,
        equipment_type=row.equipment_type,
        product_name=row.product_name,
        product_number=row.product_number,
        serial_number=row.serial_number,
        tag_id=row.tag_id,
        tag_category=row.tag_category,
        photo_category=row.photo_category,
        serial_pic_url=row.serial_pic_url,
        tag_pic_url=row.tag_pic_url,
        updated_at=_as_utc(row.updated_at),
    )


class DatabaseInventoryStore:
    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from field_inventory.db import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    def _read(self, label: str, query):
        try:
            with self.session_factory() as db:
                return db.execute(query).all()
        except SQLAlchemyError as exc:
            raise StoreError(f'Failed to load {label}: {exc}') from exc

    def load_catalog_entries(self) -> list[CatalogEntry]:
        rows = self._read(
            'catalog',
            select(
                HelperCatalog.category,
                HelperCatalog.equipment_type,
                HelperCatalog.product_name,
                HelperCatalog.product_number,
            ),
        )
        return [
            CatalogEntry(
                category=row.category,
                equipment_type=row.equipment_type,
                product_name=row.product_name,
                product_number=row.product_number,
            )
            for row in rows
        ]

    def load_category_requirements(self, site_id: str) -> list[CategoryRequirement]:
        rows = self._read(
            'site category requirements',
            select(
                SiteCategoryRequirement.category,
                SiteCategoryRequirement.required_flag,
                SiteCategoryRequirement.rule_text,
                SiteCategoryRequirement.parse_note,
            ).where(SiteCategoryRequirement.site_id_norm == requirement_site_key(site_id)),
        )
        return [
            CategoryRequirement(
                category=row.category,
                required=bool(row.required_flag),
                rule_text=row.rule_text,
                parse_note=row.parse_note,
            )
            for row in rows
        ]

    def load_records(self, site_id: str) -> list[InventoryRecord]:
        rows = self._read(
            'inventory',
            select(MainInventory)
            .where(MainInventory.site_id_canonical == clean_text(site_id))
            .order_by(MainInventory.updated_at.desc().nulls_last()),
        )
        return [_to_record(row[0]) for row in rows]

    def commit_insert(self, record: InventoryRecord) -> InventoryRecord:
        values = record.editable_values()
        try:
            with self.session_factory() as db:
                row = MainInventory(
                    site_id=record.site_id,
                    site_id_canonical=record.site_id,
                    sheet_source=record.sheet_source,
                    updated_at=_now(),
                    **values,
                )
                db.add(row)
                db.flush()
                log_audit(
                    db,
                    action='INVENTORY_ROW_INSERTED',
                    site_id_canonical=record.site_id,
                    record_id=str(row.id),
                    metadata={'category': record.category, 'product_number': record.product_number},
                )
                db.commit()
                db.refresh(row)
                return _to_record(row)
        except SQLAlchemyError as exc:
            logger.error('Insert failed for site %s: %s', record.site_id, exc)
            raise StoreError(f'Insert failed: {exc}') from exc

    def commit_update(self, record_id: str, patch: dict[str, str | None]) -> None:
        unknown = sorted(set(patch) - _PATCH_COLUMNS)
        if unknown:
            raise StoreError(f'Unknown columns: {", ".join(unknown)}')
        try:
            with self.session_factory() as db:
                row = db.execute(select(MainInventory).where(MainInventory.id == record_id)).scalar_one_or_none()
                if not row:
                    raise StoreError('Inventory row not found')
                for column, value in patch.items():
                    setattr(row, column, value)
                row.updated_at = _now()
                log_audit(
                    db,
                    action='INVENTORY_ROW_UPDATED',
                    site_id_canonical=row.site_id_canonical,
                    record_id=record_id,
                    metadata={'sheet_source': patch.get('sheet_source')},
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error('Update failed for row %s: %s', record_id, exc)
            raise StoreError(f'Update failed: {exc}') from exc

    def search_sites(self, query: str, *, limit: int) -> list[SiteSuggestion]:
        digits = site_digits(query)
        if not digits:
            return []
        rows = self._read(
            'site suggestions',
            select(MainInventory.site_id_canonical, func.count().label('row_count'))
            .where(MainInventory.site_id_canonical.ilike(f'%{digits}%'))
            .group_by(MainInventory.site_id_canonical)
            .order_by(MainInventory.site_id_canonical.asc()),
        )
        suggestions = [
            SiteSuggestion(
                site_id_canonical=row.site_id_canonical,
                site_digits=site_digits(row.site_id_canonical),
                row_count=row.row_count,
            )
            for row in rows
            if site_digits(row.site_id_canonical).startswith(digits)
        ]
        return suggestions[:limit]

    def load_tag_categories(self) -> list[str]:
        rows = self._read('tag categories', select(TagCategoryHelper.value).order_by(TagCategoryHelper.sort_order.asc()))
        return [row.value for row in rows]

    def load_photo_categories(self) -> list[str]:
        rows = self._read(
            'photo categories',
            select(PhotoCategoryHelper.value).order_by(PhotoCategoryHelper.sort_order.asc()),
        )
        return [row.value for row in rows]
