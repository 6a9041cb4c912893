from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from field_inventory.services.draft_controller import (
    Draft,
    EditDraft,
    NewDraft,
    as_conflict_candidate,
    validate_for_commit,
)
from field_inventory.services.duplicate_index import ConflictReport, DuplicateIndex
from field_inventory.services.normalization import clean_text, normalize_provenance
from field_inventory.services.records import InventoryRecord, Provenance
from field_inventory.services.requirement_gate import RequirementGate


class SaveStatus(str, Enum):
    BLOCKED = 'BLOCKED'
    WARNED = 'WARNED'
    COMMITTED = 'COMMITTED'
    FAILED = 'FAILED'


@dataclass(frozen=True)
class SaveDecision:
    blocked_reason: str | None = None
    conflicts: ConflictReport = ConflictReport()

    @property
    def blocked(self) -> bool:
        return self.blocked_reason is not None


@dataclass(frozen=True)
class SaveResult:
    status: SaveStatus
    message: str | None = None
    record: InventoryRecord | None = None
    conflicts: ConflictReport = ConflictReport()

    @property
    def committed(self) -> bool:
        return self.status in {SaveStatus.WARNED, SaveStatus.COMMITTED}


def next_provenance(current: str | None, photo_category: str | None) -> str:
    if clean_text(photo_category):
        return Provenance.MANUAL_VERIFIED.value
    if normalize_provenance(current) == normalize_provenance(Provenance.MANUAL_ADDED.value):
        return Provenance.MANUAL_ADDED.value
    return Provenance.MANUAL_EDITED.value


def build_insert_record(draft: NewDraft) -> InventoryRecord:
    """Record handed to the store for insertion; the store assigns the identity."""
    return InventoryRecord(
        id='',
        site_id=draft.site_id,
        sheet_source=Provenance.MANUAL_ADDED.value,
        **draft.fields.as_dict(),
    )


def build_update_patch(draft: EditDraft) -> dict[str, str | None]:
    patch: dict[str, str | None] = {'sheet_source': next_provenance(draft.sheet_source, draft.fields.photo_category)}
    patch.update(draft.fields.as_dict())
    return patch


class ReconciliationCoordinator:
    """Runs the in-memory checks that precede a commit.

    Missing required fields and requirement-gate rejections block the save.
    Duplicate serials or tags only produce a warning.
    """

    def __init__(self, gate: RequirementGate, duplicates: DuplicateIndex) -> None:
        self.gate = gate
        self.duplicates = duplicates

    def evaluate(self, draft: Draft) -> SaveDecision:
        missing = validate_for_commit(draft.fields)
        if missing:
            return SaveDecision(blocked_reason=missing)

        if draft.is_new:
            rejection = self.gate.rejection_reason(draft.fields.category)
            if rejection:
                return SaveDecision(blocked_reason=rejection)

        report = self.duplicates.check_conflict(
            as_conflict_candidate(draft),
            is_new=draft.is_new,
            original=draft.original,
        )
        return SaveDecision(conflicts=report)
