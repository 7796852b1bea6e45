"""
Data Router — bulk fact deletion.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from services.uploads import delete_facts

router = APIRouter(prefix="/api/v1/data", tags=["data"])


class DeleteResult(BaseModel):
    success: bool
    message: str
    deleted_count: int


@router.delete("", response_model=DeleteResult)
async def delete_data(
    type: Literal["inbound", "outbound", "all"] = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Delete facts of one kind (or all) and refresh the summaries they fed."""
    return await delete_facts(db, type)
