"""
Admin API for the masterlist and its bulk import.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.models.models import AdminUser
from dotareg.services import import_service, masterlist_service
from dotareg.services.import_service import ImportBatchResult, ImportOptions
from dotareg.services.player_store import SqlMasterlistStore
from dotareg.validators import (
    BulkImportRequest,
    MasterlistEntryData,
    MasterlistEntryUpdate,
    TextImportRequest,
)
from dotareg.web.deps import get_db, require_admin

router = APIRouter(prefix="/api/masterlist", tags=["masterlist"])


def _import_response(result: ImportBatchResult) -> JSONResponse:
    body = result.to_dict()
    if not result.ok:
        body["message"] = f"{len(result.errors)} validation error(s); nothing was imported"
        return JSONResponse(status_code=400, content=body)
    body["message"] = (
        f"Added {result.added}, updated {result.updated}, skipped {result.skipped}"
    )
    return JSONResponse(status_code=200, content=body)


@router.get("")
async def list_entries(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    entries = await masterlist_service.list_entries(session)
    return {"success": True, "players": [e.to_dict() for e in entries]}


@router.post("", status_code=201)
async def add_entry(
    body: MasterlistEntryData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    entry = await masterlist_service.add_entry(session, body)
    return {"success": True, "player": entry.to_dict()}


@router.delete("")
async def remove_all(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    removed = await masterlist_service.delete_all_entries(session)
    return {"success": True, "removed": removed}


@router.post("/bulk-import")
async def bulk_import(
    body: BulkImportRequest,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> JSONResponse:
    result = await import_service.import_players(
        SqlMasterlistStore(session),
        body.players,
        ImportOptions(skip_duplicates=body.skip_duplicates, update_existing=body.update_existing),
    )
    return _import_response(result)


@router.post("/bulk-import/text")
async def bulk_import_text(
    body: TextImportRequest,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> JSONResponse:
    result = await import_service.import_batch(
        SqlMasterlistStore(session),
        body.data,
        body.format,
        ImportOptions(skip_duplicates=body.skip_duplicates, update_existing=body.update_existing),
    )
    return _import_response(result)


@router.post("/validate")
async def validate_text(
    body: TextImportRequest,
    user: AdminUser = Depends(require_admin),
) -> dict:
    result = import_service.validate_text(body.data, body.format)
    return {
        "success": True,
        "valid": result.ok,
        "total": result.total,
        "validationErrors": [issue.to_dict() for issue in result.errors],
    }


@router.get("/{entry_id}")
async def get_entry(
    entry_id: int,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    entry = await masterlist_service.get_entry(session, entry_id)
    return {"success": True, "player": entry.to_dict()}


@router.put("/{entry_id}")
async def update_entry(
    entry_id: int,
    body: MasterlistEntryUpdate,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    entry = await masterlist_service.update_entry(session, entry_id, body)
    return {"success": True, "player": entry.to_dict()}


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: int,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await masterlist_service.delete_entry(session, entry_id)
    return {"success": True, "message": "Masterlist entry deleted"}
