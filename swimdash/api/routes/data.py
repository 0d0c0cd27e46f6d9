"""
Data management API endpoints.

Export the history as JSON (a lossless backup) or CSV (for
spreadsheets), import a JSON backup by merging or replacing, and check
how close storage is to full.

Import reads the whole upload before touching the store; a file that
is not a valid export is rejected with 400 and existing data is left
alone.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...core.sessions.models import ImportMode
from ...core.sessions.transfer import (
    CSV_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    TransferError,
    export_filename,
    export_to_csv,
    export_to_json,
    import_from_json,
)
from ..dependencies import SessionStoreDep
from ..errors import raise_for_failure

logger = logging.getLogger(__name__)

router = APIRouter()

# Export files are small; anything much larger is not one of ours
MAX_IMPORT_BYTES = 20 * 1024 * 1024


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class ImportResponse(BaseModel):
    """Outcome of an import."""
    mode: str = Field(description="merge or replace")
    version: str = Field(description="Export format version of the file")
    imported_count: int = Field(description="Sessions added from the file")
    skipped_count: int = Field(description="Sessions dropped because their id was already stored")
    total_sessions: int = Field(description="Sessions stored after the import")


class StorageUsageResponse(BaseModel):
    """How close storage is to its limits. Informational only."""
    used_bytes: int
    quota_bytes: int
    usage_ratio: float
    session_count: int
    near_capacity: bool
    too_many_sessions: bool
    recommendation: Optional[str] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/export/json",
    summary="Export sessions as JSON",
    response_class=Response,
    responses={200: {"content": {JSON_MEDIA_TYPE: {}}}},
)
async def export_json(store: SessionStoreDep) -> Response:
    sessions = store.sessions
    content = export_to_json(sessions)

    logger.info("Exported sessions to JSON", extra={"session_count": len(sessions)})

    return Response(
        content=content,
        media_type=JSON_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={export_filename('json')}"},
    )


@router.get(
    "/export/csv",
    summary="Export sessions as CSV",
    response_class=Response,
    responses={200: {"content": {CSV_MEDIA_TYPE: {}}}},
)
async def export_csv(store: SessionStoreDep) -> Response:
    sessions = store.sorted_sessions()
    content = export_to_csv(sessions)

    logger.info("Exported sessions to CSV", extra={"session_count": len(sessions)})

    return Response(
        content=content,
        media_type=f"{CSV_MEDIA_TYPE}; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={export_filename('csv')}"},
    )


@router.post(
    "/import",
    response_model=ImportResponse,
    summary="Import a JSON export",
)
async def import_data(
    store: SessionStoreDep,
    file: UploadFile = File(description="A JSON file produced by the export endpoint"),
    mode: ImportMode = Form(default=ImportMode.MERGE, description="merge or replace"),
) -> ImportResponse:
    """
    Import sessions from a JSON export.

    merge keeps every stored session and adds the ones whose id is new.
    replace discards the stored history and keeps exactly the file's
    sessions.
    """
    content = await file.read(MAX_IMPORT_BYTES + 1)
    if len(content) > MAX_IMPORT_BYTES:
        raise HTTPException(
            status_code=413,
            detail="Import file is too large",
        )

    try:
        imported = import_from_json(content)
    except TransferError as e:
        logger.warning(
            "Rejected import file",
            extra={"filename": file.filename, "error": str(e)}
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = store.import_sessions(imported.sessions, mode)
    if not result.success:
        raise_for_failure(result.error_type, result.error, "import sessions")

    return ImportResponse(
        mode=result.mode.value,
        version=imported.version,
        imported_count=result.imported_count,
        skipped_count=result.skipped_count,
        total_sessions=len(store),
    )


@router.get(
    "/storage",
    response_model=StorageUsageResponse,
    summary="Storage usage",
    description="Whether storage is close to full or holds enough sessions that archiving is worthwhile",
)
async def storage_usage(store: SessionStoreDep) -> StorageUsageResponse:
    usage = store.check_storage_usage()
    return StorageUsageResponse(
        used_bytes=usage.used_bytes,
        quota_bytes=usage.quota_bytes,
        usage_ratio=usage.usage_ratio,
        session_count=usage.session_count,
        near_capacity=usage.near_capacity,
        too_many_sessions=usage.too_many_sessions,
        recommendation=usage.recommendation,
    )
