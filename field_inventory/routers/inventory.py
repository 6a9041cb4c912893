from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from field_inventory.config import settings
from field_inventory.dependencies import get_workspace
from field_inventory.services.draft_controller import Draft, DraftStateError, missing_required_fields
from field_inventory.services.duplicate_index import ConflictReport, DuplicateFlags
from field_inventory.services.inventory_store import StoreError
from field_inventory.services.reconciliation_service import SaveResult
from field_inventory.services.records import InventoryRecord
from field_inventory.services.site_workspace import CATEGORY_TABS, LoadResult, SiteWorkspace

router = APIRouter(prefix='/inventory', tags=['inventory'])


class SiteSelection(BaseModel):
    site: str


class NewDraftRequest(BaseModel):
    tab: str | None = None


class FieldUpdate(BaseModel):
    field: str
    value: str | None = None


def _flags_payload(flags: DuplicateFlags) -> dict:
    return {'serial': flags.serial, 'tag': flags.tag}


def _record_payload(record: InventoryRecord, workspace: SiteWorkspace) -> dict:
    return {
        'id': record.id,
        'site_id': record.site_id,
        'sheet_source': record.sheet_source,
        **record.editable_values(),
        'updated_at': record.updated_at.isoformat() if record.updated_at else None,
        'duplicates': _flags_payload(workspace.record_flags(record)),
    }


def _draft_payload(draft: Draft | None, workspace: SiteWorkspace) -> dict | None:
    if draft is None:
        return None
    options = workspace.draft_options()
    return {
        'record_id': draft.record_id,
        'is_new': draft.is_new,
        'site_id': draft.site_id,
        'sheet_source': draft.sheet_source,
        'fields': draft.fields.as_dict(),
        'missing_fields': missing_required_fields(draft.fields),
        'duplicates': _flags_payload(workspace.draft_flags),
        'warning': workspace.last_warning,
        'options': {
            'categories': options.categories,
            'equipment_types': options.equipment_types,
            'product_names': options.product_names,
            'product_numbers': options.product_numbers,
            'tag_categories': workspace.tag_categories,
            'photo_categories': workspace.photo_categories,
        },
    }


def _conflicts_payload(report: ConflictReport) -> list[dict]:
    return [
        {
            'field': conflict.field,
            'value': conflict.value,
            'conflicting_record_id': conflict.conflicting_record_id,
            'conflicting_source': conflict.conflicting_source,
            'description': conflict.description,
        }
        for conflict in report.conflicts
    ]


def _view_payload(workspace: SiteWorkspace, tab: str | None) -> dict:
    return {
        'site_id': workspace.site_id,
        'tab': tab or CATEGORY_TABS[0],
        'requirement_text': workspace.active_requirement_text(tab),
        'records': [_record_payload(record, workspace) for record in workspace.visible_records(tab)],
        'total_records': len(workspace.records),
        'serial_counts': workspace.duplicates.serial_counts,
        'tag_counts': workspace.duplicates.tag_counts,
        'duplicate_values': workspace.duplicates.duplicate_value_count,
        'reference_errors': workspace.reference_errors,
        'draft': _draft_payload(workspace.drafts.draft, workspace),
    }


def _load_payload(result: LoadResult) -> dict:
    return {'site_id': result.site_id, 'record_count': result.record_count, 'errors': result.errors}


def _save_payload(result: SaveResult, workspace: SiteWorkspace) -> dict:
    return {
        'status': result.status.value,
        'committed': result.committed,
        'message': result.message,
        'record': _record_payload(result.record, workspace) if result.record else None,
        'conflicts': _conflicts_payload(result.conflicts),
        'draft': _draft_payload(workspace.drafts.draft, workspace),
    }


@router.get('/tabs')
def list_tabs() -> list[str]:
    return list(CATEGORY_TABS)


@router.get('/sites')
def search_sites(request: Request, q: str = Query(default='')) -> list[dict]:
    try:
        suggestions = request.app.state.inventory_store.search_sites(q, limit=settings.site_search_limit)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [
        {
            'site_id_canonical': suggestion.site_id_canonical,
            'site_digits': suggestion.site_digits,
            'row_count': suggestion.row_count,
        }
        for suggestion in suggestions
    ]


@router.post('/site')
def select_site(payload: SiteSelection, workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    result = workspace.load_site(payload.site)
    if result.site_id is None:
        raise HTTPException(status_code=400, detail=result.errors[-1])
    return _load_payload(result)


@router.post('/refresh')
def refresh_site(workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    result = workspace.refresh()
    if result.site_id is None:
        raise HTTPException(status_code=400, detail=result.errors[-1])
    return _load_payload(result)


@router.get('/view')
def view(tab: str | None = Query(default=None), workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    if tab is not None and tab not in CATEGORY_TABS:
        raise HTTPException(status_code=400, detail='Unknown category tab')
    return _view_payload(workspace, tab)


@router.post('/draft/edit/{record_id}')
def begin_edit(record_id: str, workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    try:
        draft = workspace.begin_edit(record_id)
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _draft_payload(draft, workspace)


@router.post('/draft/new')
def begin_add_new(payload: NewDraftRequest, workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    if payload.tab is not None and payload.tab not in CATEGORY_TABS:
        raise HTTPException(status_code=400, detail='Unknown category tab')
    try:
        draft = workspace.begin_add_new(payload.tab)
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _draft_payload(draft, workspace)


@router.patch('/draft')
def update_draft_field(payload: FieldUpdate, workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    try:
        draft = workspace.update_field(payload.field, payload.value)
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _draft_payload(draft, workspace)


@router.delete('/draft')
def cancel_draft(workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    try:
        workspace.cancel()
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {'draft': None}


@router.post('/draft/save')
def save_draft(workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    try:
        result = workspace.attempt_save()
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _save_payload(result, workspace)


@router.post('/records/{record_id}/verify')
def verify_record(record_id: str, workspace: SiteWorkspace = Depends(get_workspace)) -> dict:
    try:
        record = workspace.verify_record(record_id)
    except DraftStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _record_payload(record, workspace)
