"""
Billing Router — monthly billing with the minimum-guarantee floor.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from billing.invoice import get_month_billing, parse_month

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


class SlabLine(BaseModel):
    range: str
    rate: float
    amount: float


class BillingResponse(BaseModel):
    grossSale: float
    minGuarantee: float
    slabBreakdown: list[SlabLine]
    totalRevenue: float


@router.get("", response_model=BillingResponse)
async def get_billing(
    month: str = Query(..., description="YYYY-MM"),
    db: AsyncSession = Depends(get_db),
):
    try:
        first_day = parse_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    data = await get_month_billing(db, first_day)
    return data.to_dict()
