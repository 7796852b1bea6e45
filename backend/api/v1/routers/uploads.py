"""
Uploads Router — workbook ingestion and the upload audit log.

POST /api/v1/uploads/{inbound|outbound} runs the full pipeline: parse,
persist facts and rejected rows, refresh summaries, all in one transaction.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from ingest.errors import StructuralError
from services.aggregation import AggregationError
from services.uploads import (
    DuplicateUploadError,
    FileType,
    UploadNotFoundError,
    UploadStatus,
    export_rejected_rows,
    ingest_upload,
    list_rejected_rows,
    list_uploads,
)

router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ─── Schemas ────────────────────────────────────────────────────────────────


class UploadResult(BaseModel):
    upload_id: UUID
    row_count: int
    rejected_count: int
    replaced_count: int
    message: str
    status: str


class UploadLogResponse(BaseModel):
    id: UUID
    filename: str
    file_type: str
    row_count: int
    rejected_count: int
    checksum: str
    status: str
    message: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RejectedRowResponse(BaseModel):
    id: UUID
    upload_log_id: UUID
    row_number: int
    row_data: dict
    reason: str
    file_type: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RejectedRowPage(BaseModel):
    rows: list[RejectedRowResponse]
    total: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/{file_type}", response_model=UploadResult, status_code=201)
async def upload_workbook(
    file_type: str,
    response: Response,
    file: UploadFile = File(...),
    replace: bool = Query(False, description="Replace facts from an earlier upload of the same file"),
    db: AsyncSession = Depends(get_db),
):
    try:
        kind = FileType(file_type.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown file type: {file_type}")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file provided")

    try:
        outcome = await ingest_upload(
            db,
            content=content,
            filename=file.filename or "upload.xlsx",
            file_type=kind,
            replace=replace,
        )
    except StructuralError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except DuplicateUploadError as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "existing_upload_id": str(exc.upload_id)},
        )
    except AggregationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    if outcome.status is UploadStatus.FAILED:
        response.status_code = 422
    return UploadResult(**outcome.to_dict())


@router.get("", response_model=list[UploadLogResponse])
async def get_upload_log(
    file_type: str | None = None,
    status: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await list_uploads(db, file_type=file_type, status=status, skip=skip, limit=limit)


@router.get("/{upload_id}/rejected-rows", response_model=RejectedRowPage)
async def get_upload_rejected_rows(
    upload_id: UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await list_rejected_rows(db, upload_id=upload_id, skip=skip, limit=limit)
    return RejectedRowPage(rows=rows, total=total)


@router.get("/{upload_id}/rejected-rows/export")
async def download_rejected_rows(upload_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        filename, payload = await export_rejected_rows(db, upload_id)
    except UploadNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
