"""
Rejected Rows Router — every row diverted during ingestion, across uploads.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from api.v1.routers.uploads import RejectedRowPage
from services.uploads import list_rejected_rows

router = APIRouter(prefix="/api/v1/rejected-rows", tags=["rejected-rows"])


@router.get("", response_model=RejectedRowPage)
async def get_rejected_rows(
    upload_id: UUID | None = None,
    file_type: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await list_rejected_rows(db, upload_id=upload_id, file_type=file_type, skip=skip, limit=limit)
    return RejectedRowPage(rows=rows, total=total)
