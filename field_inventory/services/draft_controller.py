from __future__ import annotations

from dataclasses import dataclass, field, replace

from field_inventory.services.duplicate_index import ConflictCandidate
from field_inventory.services.normalization import clean_text, optional_text
from field_inventory.services.records import (
    CATALOG_CASCADE,
    EDITABLE_FIELDS,
    InventoryRecord,
    Provenance,
)

REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ('category', 'Category'),
    ('equipment_type', 'Equipment Type'),
    ('product_number', 'Product Number'),
)


class DraftStateError(ValueError):
    pass


@dataclass(frozen=True)
class DraftFields:
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

    @classmethod
    def from_record(cls, record: InventoryRecord) -> DraftFields:
        return cls(**record.editable_values())

    def as_dict(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


@dataclass(frozen=True)
class NewDraft:
    site_id: str
    fields: DraftFields = field(default_factory=DraftFields)
    sheet_source: str = Provenance.MANUAL_ADDED.value

    is_new = True

    @property
    def record_id(self) -> None:
        return None

    @property
    def original(self) -> None:
        return None


@dataclass(frozen=True)
class EditDraft:
    original: InventoryRecord
    fields: DraftFields

    is_new = False

    @property
    def record_id(self) -> str:
        return self.original.id

    @property
    def site_id(self) -> str:
        return self.original.site_id

    @property
    def sheet_source(self) -> str | None:
        return self.original.sheet_source

    @property
    def has_changes(self) -> bool:
        return self.fields != DraftFields.from_record(self.original)


Draft = NewDraft | EditDraft


def as_conflict_candidate(draft: Draft) -> ConflictCandidate:
    return ConflictCandidate(
        site_id=draft.site_id,
        record_id=draft.record_id,
        serial_number=draft.fields.serial_number,
        tag_id=draft.fields.tag_id,
    )


def missing_required_fields(fields: DraftFields) -> list[str]:
    return [label for name, label in REQUIRED_FIELDS if not clean_text(getattr(fields, name))]


def validate_for_commit(fields: DraftFields) -> str | None:
    """Blocking message when a required catalog field is blank, else ``None``."""
    if not missing_required_fields(fields):
        return None
    return 'Category, Equipment Type, and Product Number are required.'


class DraftController:
    """Owns the single in-flight edit of one site view.

    Idle when ``draft`` is ``None``; Editing otherwise. Opening another row
    replaces the previous draft, so at most one draft exists at a time.
    """

    def __init__(self) -> None:
        self._draft: Draft | None = None

    @property
    def draft(self) -> Draft | None:
        return self._draft

    @property
    def is_editing(self) -> bool:
        return self._draft is not None

    @property
    def is_new(self) -> bool:
        return self._draft is not None and self._draft.is_new

    def _require_draft(self) -> Draft:
        if self._draft is None:
            raise DraftStateError('No row is being edited')
        return self._draft

    def begin_edit(self, record: InventoryRecord) -> EditDraft:
        if isinstance(self._draft, EditDraft) and self._draft.record_id == record.id:
            raise DraftStateError('This row is already being edited')
        self._draft = EditDraft(original=record, fields=DraftFields.from_record(record))
        return self._draft

    def begin_add_new(self, site_id: str, default_category: str | None = None) -> NewDraft:
        if self._draft is not None:
            raise DraftStateError('Finish or cancel the current edit before adding a row')
        site = clean_text(site_id)
        if not site:
            raise DraftStateError('Select a site before adding a row')
        self._draft = NewDraft(site_id=site, fields=DraftFields(category=optional_text(default_category)))
        return self._draft

    def update_field(self, name: str, value: str | None) -> Draft:
        draft = self._require_draft()
        if name not in EDITABLE_FIELDS:
            raise ValueError(f'Unknown field: {name}')

        changes: dict[str, str | None] = {name: value if clean_text(value) else None}
        if name in CATALOG_CASCADE:
            for downstream in CATALOG_CASCADE[CATALOG_CASCADE.index(name) + 1 :]:
                changes[downstream] = None

        self._draft = replace(draft, fields=replace(draft.fields, **changes))
        return self._draft

    def cancel(self) -> None:
        self._require_draft()
        self._draft = None

    def validate_for_commit(self) -> str | None:
        return validate_for_commit(self._require_draft().fields)

    @property
    def can_commit(self) -> bool:
        return self._draft is not None and validate_for_commit(self._draft.fields) is None

    def finish(self, draft: Draft) -> None:
        """Return to Idle after ``draft`` was committed, unless another draft replaced it."""
        if self._draft is draft:
            self._draft = None
