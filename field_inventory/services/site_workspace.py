from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from field_inventory.services.catalog_index import CascadeOptions, CatalogIndex
from field_inventory.services.draft_controller import Draft, DraftController, DraftStateError, EditDraft, NewDraft
from field_inventory.services.duplicate_index import DuplicateFlags, DuplicateIndex
from field_inventory.services.inventory_store import InventoryStore, StoreError
from field_inventory.services.normalization import canonical_site_id, normalize_category_key
from field_inventory.services.reconciliation_service import (
    ReconciliationCoordinator,
    SaveResult,
    SaveStatus,
    build_insert_record,
    build_update_patch,
)
from field_inventory.services.records import InventoryRecord, Provenance
from field_inventory.services.requirement_gate import RequirementGate

logger = logging.getLogger(__name__)

ALL_TAB = 'All'
CATEGORY_TABS: tuple[str, ...] = (
    ALL_TAB,
    'Enclosure-Active',
    'Enclosure-Passive',
    'MW-Active',
    'MW-Passive',
    'RAN-Active',
    'RAN-Passive',
)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _tab_category(tab: str | None) -> str | None:
    if not tab or tab == ALL_TAB:
        return None
    return tab


@dataclass(frozen=True)
class LoadResult:
    site_id: str | None
    record_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class SiteWorkspace:
    """Everything one operator session needs for one site view.

    Holds the loaded record set, the indices derived from it and the draft
    controller. Indices are replaced as a whole after each load or commit.
    """

    def __init__(self, store: InventoryStore) -> None:
        self.store = store
        self.site_id: str | None = None
        self.records: list[InventoryRecord] = []
        self.catalog = CatalogIndex.empty()
        self.gate = RequirementGate.permissive('')
        self.duplicates = DuplicateIndex(site_id='')
        self.drafts = DraftController()
        self.tag_categories: list[str] = []
        self.photo_categories: list[str] = []
        self.reference_loaded = False
        self.reference_errors: list[str] = []
        self.draft_flags = DuplicateFlags()
        self.last_warning: str | None = None

    def load_reference_data(self) -> list[str]:
        """Load the catalog and helper lists.

        ``reference_loaded`` only becomes true once every list loaded, so a
        failed part is retried by the next ``load_site``.
        """
        errors: list[str] = []
        try:
            self.catalog = CatalogIndex.build(self.store.load_catalog_entries())
        except StoreError as exc:
            logger.warning('Failed to load catalog: %s', exc)
            errors.append(str(exc))
        try:
            self.tag_categories = self.store.load_tag_categories()
        except StoreError as exc:
            logger.warning('Failed to load tag categories: %s', exc)
            errors.append(str(exc))
        try:
            self.photo_categories = self.store.load_photo_categories()
        except StoreError as exc:
            logger.warning('Failed to load photo categories: %s', exc)
            errors.append(str(exc))
        self.reference_loaded = not errors
        self.reference_errors = errors
        return errors

    def load_site(self, query: str) -> LoadResult:
        canonical = canonical_site_id(query)
        if not canonical:
            return LoadResult(site_id=None, errors=['Enter a site id containing digits'])

        errors: list[str] = []
        if not self.reference_loaded:
            errors.extend(self.load_reference_data())

        try:
            records = self.store.load_records(canonical)
        except StoreError as exc:
            logger.warning('Failed to load inventory for %s: %s', canonical, exc)
            return LoadResult(site_id=self.site_id, record_count=len(self.records), errors=[*errors, str(exc)])

        try:
            gate = RequirementGate.build(canonical, self.store.load_category_requirements(canonical))
        except StoreError as exc:
            logger.warning('Failed to load site category requirements for %s: %s', canonical, exc)
            errors.append(str(exc))
            gate = RequirementGate.permissive(canonical)

        self.site_id = canonical
        self.records = list(records)
        self.gate = gate
        self.duplicates = DuplicateIndex.build(canonical, self.records)
        self._reset_draft()
        logger.info('Loaded %s rows for %s', len(self.records), canonical)
        return LoadResult(site_id=canonical, record_count=len(self.records), errors=errors)

    def refresh(self) -> LoadResult:
        if not self.site_id:
            return LoadResult(site_id=None, errors=['No site selected'])
        return self.load_site(self.site_id)

    def _reset_draft(self) -> None:
        if self.drafts.is_editing:
            self.drafts.cancel()
        self.draft_flags = DuplicateFlags()
        self.last_warning = None

    def get_record(self, record_id: str) -> InventoryRecord:
        for record in self.records:
            if record.id == record_id:
                return record
        raise ValueError('Inventory row not found')

    def begin_edit(self, record_id: str) -> EditDraft:
        record = self.get_record(record_id)
        current = self.drafts.draft
        if isinstance(current, EditDraft) and current.record_id == record.id:
            return current
        self.draft_flags = DuplicateFlags()
        self.last_warning = None
        return self.drafts.begin_edit(record)

    def begin_add_new(self, tab: str | None = None) -> NewDraft:
        if not self.site_id:
            raise DraftStateError('Select a site before adding a row')
        self._reset_draft()
        return self.drafts.begin_add_new(self.site_id, _tab_category(tab))

    def update_field(self, name: str, value: str | None) -> Draft:
        return self.drafts.update_field(name, value)

    def cancel(self) -> None:
        self.drafts.cancel()
        self.draft_flags = DuplicateFlags()
        self.last_warning = None

    def attempt_save(self) -> SaveResult:
        draft = self.drafts.draft
        if draft is None:
            raise DraftStateError('No row is being edited')

        decision = ReconciliationCoordinator(self.gate, self.duplicates).evaluate(draft)
        if decision.blocked:
            self.draft_flags = DuplicateFlags()
            return SaveResult(status=SaveStatus.BLOCKED, message=decision.blocked_reason)

        report = decision.conflicts
        self.draft_flags = DuplicateFlags(serial=report.serial_conflict, tag=report.tag_conflict)
        self.last_warning = report.message

        try:
            record = self._commit(draft)
        except StoreError as exc:
            logger.error('Save failed for %s: %s', draft.record_id or 'new row', exc)
            return SaveResult(status=SaveStatus.FAILED, message=str(exc), conflicts=report)

        self.duplicates = DuplicateIndex.build(self.site_id or draft.site_id, self.records)
        self.drafts.finish(draft)
        self.draft_flags = DuplicateFlags()
        self.last_warning = None
        if report.has_conflict:
            return SaveResult(status=SaveStatus.WARNED, message=report.message, record=record, conflicts=report)
        return SaveResult(status=SaveStatus.COMMITTED, record=record)

    def _commit(self, draft: Draft) -> InventoryRecord:
        if isinstance(draft, NewDraft):
            record = self.store.commit_insert(build_insert_record(draft))
            self.records = [record, *self.records]
            return record

        patch = build_update_patch(draft)
        self.store.commit_update(draft.record_id, patch)
        return self._merge_update(draft.original, patch)

    def _merge_update(self, original: InventoryRecord, patch: dict[str, str | None]) -> InventoryRecord:
        record = replace(original, updated_at=_now(), **patch)
        # The updated row is now the most recently modified one.
        self.records = [record, *(row for row in self.records if row.id != record.id)]
        return record

    def verify_record(self, record_id: str) -> InventoryRecord:
        """Mark a row as checked on site without opening a draft.

        Store failures propagate and leave the live set unchanged.
        """
        record = self.get_record(record_id)
        current = self.drafts.draft
        if isinstance(current, EditDraft) and current.record_id == record.id:
            raise DraftStateError('Save or cancel the open edit before verifying this row')

        patch = {'sheet_source': Provenance.MANUAL_VERIFIED.value}
        self.store.commit_update(record.id, patch)
        verified = self._merge_update(record, patch)
        self.duplicates = DuplicateIndex.build(self.site_id or verified.site_id, self.records)
        logger.info('Verified row %s on %s', verified.id, verified.site_id)
        return verified

    def visible_records(self, tab: str | None = None) -> list[InventoryRecord]:
        category = _tab_category(tab)
        if category is None:
            return list(self.records)
        key = normalize_category_key(category)
        return [record for record in self.records if normalize_category_key(record.category) == key]

    def active_requirement_text(self, tab: str | None = None) -> str:
        category = _tab_category(tab)
        if category is None:
            return ''
        return self.gate.explanation_for(category)

    def draft_options(self) -> CascadeOptions:
        draft = self.drafts.draft
        if draft is None:
            return self.catalog.options_for()
        return self.catalog.options_for(
            draft.fields.category,
            draft.fields.equipment_type,
            draft.fields.product_name,
        )

    def record_flags(self, record: InventoryRecord) -> DuplicateFlags:
        return self.duplicates.duplicate_flags(record)
