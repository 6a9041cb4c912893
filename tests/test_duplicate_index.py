from __future__ import annotations

import unittest
from datetime import datetime, timezone

from field_inventory.services.duplicate_index import ConflictCandidate, DuplicateIndex
from field_inventory.services.records import InventoryRecord


def _record(record_id: str, day: int | None, *, serial=None, tag=None, site='W100', source='Original'):
    return InventoryRecord(
        id=record_id,
        site_id=site,
        sheet_source=source,
        serial_number=serial,
        tag_id=tag,
        updated_at=datetime(2026, 1, day, tzinfo=timezone.utc) if day else None,
    )


class DuplicateIndexTests(unittest.TestCase):
    def setUp(self) -> None:
        self.a = _record('aaaaaaaa-1111', 1, serial='SN1')
        self.b = _record('bbbbbbbb-2222', 5, serial='sn1 ', tag='TAG-9', source='Manual_edited')
        self.records = [self.a, self.b]
        self.index = DuplicateIndex.build('W100', self.records)

    def test_frequency_and_winner_maps(self) -> None:
        self.assertEqual(self.index.serial_counts, {'sn1': 2})
        self.assertEqual(self.index.tag_counts, {'tag-9': 1})
        self.assertEqual({key: record.id for key, record in self.index.serial_winners.items()}, {'sn1': 'bbbbbbbb-2222'})

    def test_winner_does_not_depend_on_input_order(self) -> None:
        index = DuplicateIndex.build('W100', [self.b, self.a])
        self.assertEqual(index.serial_winner('SN1').id, 'bbbbbbbb-2222')

    def test_undated_records_lose_to_dated_ones(self) -> None:
        undated = _record('cccccccc-3333', None, serial='SN1')
        index = DuplicateIndex.build('W100', [undated, self.a])
        self.assertEqual(index.serial_winner('sn1').id, 'aaaaaaaa-1111')

    def test_rebuild_is_idempotent(self) -> None:
        self.assertEqual(DuplicateIndex.build('W100', self.records), self.index)

    def test_other_sites_are_ignored(self) -> None:
        index = DuplicateIndex.build('W100', [self.a, _record('dddddddd-4444', 9, serial='SN1', site='W200')])
        self.assertEqual(index.serial_counts, {'sn1': 1})
        self.assertEqual(index.serial_winner('SN1').id, 'aaaaaaaa-1111')

    def test_duplicate_flags(self) -> None:
        flags = self.index.duplicate_flags(self.a)
        self.assertTrue(flags.serial)
        self.assertFalse(flags.tag)
        self.assertEqual(self.index.duplicate_value_count, 1)

    def test_no_values_means_no_conflict(self) -> None:
        report = self.index.check_conflict(
            ConflictCandidate('W100', None, '  ', None),
            is_new=True,
        )
        self.assertFalse(report.has_conflict)
        self.assertIsNone(report.message)

    def test_unchanged_edit_skips_check(self) -> None:
        report = self.index.check_conflict(
            ConflictCandidate('W100', self.a.id, ' SN1', None),
            is_new=False,
            original=self.a,
        )
        self.assertTrue(report.skipped)
        self.assertFalse(report.has_conflict)

    def test_loser_setting_serial_conflicts_with_winner(self) -> None:
        original = _record('aaaaaaaa-1111', 1)
        report = self.index.check_conflict(
            ConflictCandidate('W100', original.id, 'SN1', None),
            is_new=False,
            original=original,
        )
        self.assertTrue(report.serial_conflict)
        self.assertFalse(report.tag_conflict)
        conflict = report.conflicts[0]
        self.assertEqual(conflict.conflicting_record_id, 'bbbbbbbb-2222')
        self.assertIn('conflict row: bbbbbbbb...', report.message)
        self.assertIn('source: Manual_edited', report.message)

    def test_winner_editing_its_own_value_does_not_conflict(self) -> None:
        original = _record('bbbbbbbb-2222', 5)
        report = self.index.check_conflict(
            ConflictCandidate('W100', 'bbbbbbbb-2222', 'SN1', 'TAG-9'),
            is_new=False,
            original=original,
        )
        self.assertFalse(report.has_conflict)

    def test_new_record_conflicts_on_both_fields(self) -> None:
        report = self.index.check_conflict(
            ConflictCandidate('W100', None, 'sn1', 'tag-9'),
            is_new=True,
        )
        self.assertTrue(report.serial_conflict)
        self.assertTrue(report.tag_conflict)
        self.assertEqual(len(report.conflicts), 2)

    def test_new_record_on_other_site_is_out_of_scope(self) -> None:
        report = self.index.check_conflict(
            ConflictCandidate('W200', None, 'SN1', None),
            is_new=True,
        )
        self.assertFalse(report.has_conflict)


if __name__ == '__main__':
    unittest.main()
