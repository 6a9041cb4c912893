from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from field_inventory.services.normalization import clean_text, normalize_value
from field_inventory.services.records import InventoryRecord, sort_most_recent_first

logger = logging.getLogger(__name__)

SERIAL_FIELD = 'serial_number'
TAG_FIELD = 'tag_id'

_FIELD_LABELS = {SERIAL_FIELD: 'Serial', TAG_FIELD: 'Tag ID'}
_ID_PREFIX_LENGTH = 8


@dataclass(frozen=True)
class ConflictCandidate:
    site_id: str
    record_id: str | None
    serial_number: str | None
    tag_id: str | None


@dataclass(frozen=True)
class FieldConflict:
    field: str
    value: str
    conflicting_record_id: str
    conflicting_source: str | None

    @property
    def description(self) -> str:
        short_id = self.conflicting_record_id[:_ID_PREFIX_LENGTH]
        return (
            f'{_FIELD_LABELS[self.field]} "{self.value}" already exists on this site '
            f'(conflict row: {short_id}..., source: {self.conflicting_source or "unknown"})'
        )


@dataclass(frozen=True)
class ConflictReport:
    conflicts: tuple[FieldConflict, ...] = ()
    skipped: bool = False

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    @property
    def serial_conflict(self) -> bool:
        return any(conflict.field == SERIAL_FIELD for conflict in self.conflicts)

    @property
    def tag_conflict(self) -> bool:
        return any(conflict.field == TAG_FIELD for conflict in self.conflicts)

    @property
    def message(self) -> str | None:
        if not self.conflicts:
            return None
        parts = [conflict.description for conflict in self.conflicts]
        parts.append('Review the rows flagged as duplicated in this site.')
        return ' '.join(parts)


@dataclass(frozen=True)
class DuplicateFlags:
    serial: bool = False
    tag: bool = False


@dataclass(frozen=True)
class DuplicateIndex:
    """Duplicate facts for one site's record set.

    Frequencies drive the "still duplicated" badges; winners (the most
    recently modified record per value) drive conflict checks for drafts.
    Both are keyed by the trimmed, case-folded value.
    """

    site_id: str
    serial_counts: dict[str, int] = field(default_factory=dict)
    tag_counts: dict[str, int] = field(default_factory=dict)
    serial_winners: dict[str, InventoryRecord] = field(default_factory=dict)
    tag_winners: dict[str, InventoryRecord] = field(default_factory=dict)

    @classmethod
    def build(cls, site_id: str, records: Iterable[InventoryRecord]) -> DuplicateIndex:
        site_key = clean_text(site_id)
        serial_counts: Counter[str] = Counter()
        tag_counts: Counter[str] = Counter()
        serial_winners: dict[str, InventoryRecord] = {}
        tag_winners: dict[str, InventoryRecord] = {}

        for record in sort_most_recent_first(list(records)):
            if clean_text(record.site_id) != site_key:
                continue
            serial = normalize_value(record.serial_number)
            if serial:
                serial_counts[serial] += 1
                serial_winners.setdefault(serial, record)
            tag = normalize_value(record.tag_id)
            if tag:
                tag_counts[tag] += 1
                tag_winners.setdefault(tag, record)

        return cls(
            site_id=site_key,
            serial_counts=dict(serial_counts),
            tag_counts=dict(tag_counts),
            serial_winners=serial_winners,
            tag_winners=tag_winners,
        )

    def serial_winner(self, value: str | None) -> InventoryRecord | None:
        key = normalize_value(value)
        return self.serial_winners.get(key) if key else None

    def tag_winner(self, value: str | None) -> InventoryRecord | None:
        key = normalize_value(value)
        return self.tag_winners.get(key) if key else None

    def is_serial_duplicated(self, value: str | None) -> bool:
        key = normalize_value(value)
        return bool(key) and self.serial_counts.get(key, 0) > 1

    def is_tag_duplicated(self, value: str | None) -> bool:
        key = normalize_value(value)
        return bool(key) and self.tag_counts.get(key, 0) > 1

    def duplicate_flags(self, record: InventoryRecord) -> DuplicateFlags:
        return DuplicateFlags(
            serial=self.is_serial_duplicated(record.serial_number),
            tag=self.is_tag_duplicated(record.tag_id),
        )

    @property
    def duplicate_value_count(self) -> int:
        serials = sum(1 for count in self.serial_counts.values() if count > 1)
        tags = sum(1 for count in self.tag_counts.values() if count > 1)
        return serials + tags

    def check_conflict(
        self,
        candidate: ConflictCandidate,
        *,
        is_new: bool,
        original: InventoryRecord | None = None,
    ) -> ConflictReport:
        serial = clean_text(candidate.serial_number)
        tag = clean_text(candidate.tag_id)

        if not serial and not tag:
            return ConflictReport()

        if not is_new and original is not None:
            if serial == clean_text(original.serial_number) and tag == clean_text(original.tag_id):
                logger.debug('Duplicate check skipped for %s: serial and tag unchanged', candidate.record_id)
                return ConflictReport(skipped=True)

        if clean_text(candidate.site_id) != self.site_id:
            return ConflictReport()

        conflicts: list[FieldConflict] = []
        for field_name, value, winner in (
            (SERIAL_FIELD, serial, self.serial_winner(serial)),
            (TAG_FIELD, tag, self.tag_winner(tag)),
        ):
            if not value or winner is None or winner.id == candidate.record_id:
                continue
            conflicts.append(
                FieldConflict(
                    field=field_name,
                    value=value,
                    conflicting_record_id=winner.id,
                    conflicting_source=winner.sheet_source,
                )
            )

        if conflicts:
            logger.info(
                'Duplicate %s on site %s for %s',
                ', '.join(conflict.field for conflict in conflicts),
                self.site_id,
                candidate.record_id or 'new row',
            )
        return ConflictReport(conflicts=tuple(conflicts))
