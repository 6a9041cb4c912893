from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from field_inventory.services.catalog_index import CatalogEntry
from field_inventory.services.draft_controller import DraftStateError, EditDraft
from field_inventory.services.inventory_store import StoreError
from field_inventory.services.mock_inventory_store import MockInventoryStore
from field_inventory.services.reconciliation_service import SaveStatus
from field_inventory.services.records import InventoryRecord
from field_inventory.services.requirement_gate import CategoryRequirement
from field_inventory.services.site_workspace import SiteWorkspace


def _record(record_id: str, day: int, **values) -> InventoryRecord:
    base = {
        'site_id': 'W100',
        'sheet_source': 'Original',
        'category': 'Enclosure-Active',
        'equipment_type': 'Cabinet',
        'product_name': 'ModelX',
        'product_number': 'PN-1',
    }
    base.update(values)
    return InventoryRecord(id=record_id, updated_at=datetime(2026, 1, day, tzinfo=timezone.utc), **base)


def _store() -> MockInventoryStore:
    return MockInventoryStore(
        catalog=[
            CatalogEntry('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-1'),
            CatalogEntry('Enclosure-Active', 'Cabinet', 'ModelX', 'PN-2'),
            CatalogEntry('MW-Passive', 'Antenna', 'Dish', 'ANT-06'),
        ],
        requirements={'100': [CategoryRequirement('MW-Passive', False, 'No passive MW', None)]},
        records=[
            _record('a', 1, serial_number='SN1'),
            _record('b', 5, serial_number='SN1', tag_id='T-1'),
            _record('c', 3, category='MW-Passive', equipment_type='Antenna', product_name='Dish', product_number='ANT-06'),
            _record('other', 9, site_id='W200', serial_number='SN1'),
        ],
    )


class SiteWorkspaceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = _store()
        self.workspace = SiteWorkspace(self.store)
        result = self.workspace.load_site('w-100')
        self.assertTrue(result.ok)

    def test_load_site_builds_indices(self) -> None:
        self.assertEqual(self.workspace.site_id, 'W100')
        self.assertEqual([record.id for record in self.workspace.records], ['b', 'c', 'a'])
        self.assertEqual(self.workspace.duplicates.serial_counts, {'sn1': 2})
        self.assertEqual(self.workspace.duplicates.serial_winner('SN1').id, 'b')
        self.assertEqual(self.workspace.catalog.categories, ['Enclosure-Active', 'MW-Passive'])
        self.assertEqual(self.workspace.photo_categories, ['Serial', 'Tag', 'Both'])

    def test_load_site_rejects_input_without_digits(self) -> None:
        result = self.workspace.load_site('abc')
        self.assertIsNone(result.site_id)
        self.assertFalse(result.ok)
        self.assertEqual(self.workspace.site_id, 'W100')

    def test_visible_records_never_hide_duplicates(self) -> None:
        visible = self.workspace.visible_records('Enclosure-Active')
        self.assertEqual([record.id for record in visible], ['b', 'a'])
        self.assertTrue(all(self.workspace.record_flags(record).serial for record in visible))
        self.assertEqual(len(self.workspace.visible_records('All')), 3)

    def test_active_requirement_text(self) -> None:
        self.assertEqual(self.workspace.active_requirement_text('MW-Passive'), 'No passive MW')
        self.assertEqual(self.workspace.active_requirement_text('All'), '')

    def test_unchanged_edit_commits_without_warning(self) -> None:
        self.workspace.begin_edit('a')
        self.workspace.update_field('tag_category', 'Asset Tag')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.COMMITTED)
        self.assertIsNone(self.workspace.drafts.draft)
        self.assertEqual(result.record.sheet_source, 'Manual_edited')

    def test_loser_setting_serial_warns_and_commits(self) -> None:
        self.store.records[0] = _record('a', 1, serial_number=None)
        self.workspace.refresh()
        self.workspace.begin_edit('a')
        self.workspace.update_field('serial_number', 'sn1')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.WARNED)
        self.assertTrue(result.committed)
        self.assertEqual(result.conflicts.conflicts[0].conflicting_record_id, 'b')
        self.assertIsNone(self.workspace.drafts.draft)
        self.assertEqual(self.store.records[0].serial_number, 'sn1')

    def test_winner_edit_does_not_warn(self) -> None:
        self.workspace.begin_edit('b')
        self.workspace.update_field('serial_number', 'SN1 ')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.COMMITTED)

    def test_commit_rebuilds_winners(self) -> None:
        self.workspace.begin_edit('a')
        self.workspace.update_field('tag_category', 'Asset Tag')
        self.workspace.attempt_save()
        self.assertEqual(self.workspace.records[0].id, 'a')
        self.assertEqual(self.workspace.duplicates.serial_winner('SN1').id, 'a')
        self.assertEqual(self.workspace.duplicates.serial_counts, {'sn1': 2})

    def test_new_row_in_not_required_category_is_blocked(self) -> None:
        self.workspace.begin_add_new('MW-Passive')
        self.workspace.update_field('equipment_type', 'Antenna')
        self.workspace.update_field('product_number', 'ANT-06')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.BLOCKED)
        self.assertIn('Not allowed: MW-Passive', result.message)
        self.assertIsNotNone(self.workspace.drafts.draft)
        self.assertEqual(len(self.store.records), 4)

    def test_edit_in_not_required_category_is_saved(self) -> None:
        self.workspace.begin_edit('c')
        self.workspace.update_field('serial_number', 'SN-C')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.COMMITTED)

    def test_new_row_is_inserted_and_merged(self) -> None:
        self.workspace.begin_add_new('Enclosure-Active')
        self.workspace.update_field('equipment_type', 'Cabinet')
        self.workspace.update_field('product_number', 'PN-2')
        self.workspace.update_field('serial_number', 'SN-NEW')
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.COMMITTED)
        self.assertEqual(result.record.sheet_source, 'Manual_added')
        self.assertEqual(self.workspace.records[0].id, result.record.id)
        self.assertEqual(self.workspace.duplicates.serial_counts['sn-new'], 1)

    def test_missing_fields_block_save(self) -> None:
        self.workspace.begin_add_new()
        result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.BLOCKED)
        self.assertFalse(result.committed)

    def test_begin_add_new_cancels_open_edit(self) -> None:
        self.workspace.begin_edit('a')
        draft = self.workspace.begin_add_new('All')
        self.assertTrue(draft.is_new)
        self.assertIsNone(draft.fields.category)

    def test_begin_add_new_requires_site(self) -> None:
        workspace = SiteWorkspace(self.store)
        with self.assertRaises(DraftStateError):
            workspace.begin_add_new()

    def test_reopening_same_row_keeps_draft(self) -> None:
        self.workspace.begin_edit('a')
        self.workspace.update_field('serial_number', 'changed')
        draft = self.workspace.begin_edit('a')
        self.assertIsInstance(draft, EditDraft)
        self.assertEqual(draft.fields.serial_number, 'changed')

    def test_unknown_row_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.workspace.begin_edit('missing')

    def test_failed_commit_keeps_draft(self) -> None:
        self.workspace.begin_edit('a')
        self.workspace.update_field('serial_number', 'SN-X')
        draft = self.workspace.drafts.draft
        with patch.object(self.store, 'commit_update', side_effect=StoreError('connection reset')):
            result = self.workspace.attempt_save()
        self.assertEqual(result.status, SaveStatus.FAILED)
        self.assertEqual(result.message, 'connection reset')
        self.assertIs(self.workspace.drafts.draft, draft)
        self.assertEqual(self.workspace.get_record('a').serial_number, 'SN1')

    def test_failed_record_load_keeps_previous_state(self) -> None:
        duplicates = self.workspace.duplicates
        with patch.object(self.store, 'load_records', side_effect=StoreError('timeout')):
            result = self.workspace.load_site('W200')
        self.assertEqual(result.errors, ['timeout'])
        self.assertEqual(self.workspace.site_id, 'W100')
        self.assertIs(self.workspace.duplicates, duplicates)

    def test_failed_requirement_load_is_permissive(self) -> None:
        with patch.object(self.store, 'load_category_requirements', side_effect=StoreError('denied')):
            result = self.workspace.load_site('W100')
        self.assertEqual(result.errors, ['denied'])
        self.assertTrue(self.workspace.gate.is_allowed('MW-Passive'))

    def test_failed_catalog_load_keeps_previous_catalog(self) -> None:
        catalog = self.workspace.catalog
        with patch.object(self.store, 'load_catalog_entries', side_effect=StoreError('down')):
            errors = self.workspace.load_reference_data()
        self.assertEqual(errors, ['down'])
        self.assertIs(self.workspace.catalog, catalog)

    def test_failed_reference_load_is_reported_and_retried(self) -> None:
        workspace = SiteWorkspace(self.store)
        with patch.object(self.store, 'load_catalog_entries', side_effect=StoreError('down')):
            result = workspace.load_site('W100')
        self.assertEqual(result.site_id, 'W100')
        self.assertEqual(result.errors, ['down'])
        self.assertFalse(workspace.reference_loaded)
        self.assertEqual(workspace.reference_errors, ['down'])
        self.assertTrue(workspace.catalog.is_empty)

        result = workspace.refresh()
        self.assertTrue(result.ok)
        self.assertTrue(workspace.reference_loaded)
        self.assertEqual(workspace.reference_errors, [])
        self.assertEqual(workspace.catalog.categories, ['Enclosure-Active', 'MW-Passive'])

    def test_loaded_reference_data_is_not_reloaded(self) -> None:
        with patch.object(self.store, 'load_catalog_entries', side_effect=StoreError('down')) as load:
            result = self.workspace.load_site('W100')
        self.assertTrue(result.ok)
        load.assert_not_called()

    def test_verify_record_marks_row_and_rebuilds_winners(self) -> None:
        verified = self.workspace.verify_record('a')
        self.assertEqual(verified.sheet_source, 'Manual_verified')
        self.assertEqual(self.workspace.records[0].id, 'a')
        self.assertEqual(self.workspace.duplicates.serial_winner('SN1').id, 'a')
        stored = next(record for record in self.store.records if record.id == 'a')
        self.assertEqual(stored.sheet_source, 'Manual_verified')
        self.assertIsNone(self.workspace.drafts.draft)

    def test_verify_record_refuses_row_being_edited(self) -> None:
        self.workspace.begin_edit('a')
        with self.assertRaises(DraftStateError):
            self.workspace.verify_record('a')
        self.workspace.verify_record('c')
        self.assertEqual(self.workspace.drafts.draft.record_id, 'a')

    def test_failed_verify_keeps_live_set(self) -> None:
        records = self.workspace.records
        with patch.object(self.store, 'commit_update', side_effect=StoreError('offline')):
            with self.assertRaises(StoreError):
                self.workspace.verify_record('a')
        self.assertIs(self.workspace.records, records)
        self.assertEqual(self.workspace.get_record('a').sheet_source, 'Original')

    def test_draft_options_follow_selection(self) -> None:
        self.workspace.begin_add_new('Enclosure-Active')
        self.workspace.update_field('equipment_type', 'Cabinet')
        self.workspace.update_field('product_name', 'ModelX')
        options = self.workspace.draft_options()
        self.assertEqual(options.product_numbers, ['PN-1', 'PN-2'])

    def test_workspaces_are_isolated(self) -> None:
        other = SiteWorkspace(self.store)
        other.load_site('W100')
        self.workspace.begin_edit('a')
        self.assertIsNone(other.drafts.draft)


if __name__ == '__main__':
    unittest.main()
