"""
Reports Router — dashboard KPIs and chart series.

All ranges take `from`/`to` as YYYY-MM-DD, both days inclusive.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from revenue.calculator import RevenueMode
from services import reports

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class Delta(BaseModel):
    absolute: float
    percentage: float


class OutboundKPIDeltas(BaseModel):
    gross_sale: Delta
    revenue: Delta
    invoice_count: Delta
    invoice_qty: Delta
    boxes: Delta


class OutboundKPIResponse(BaseModel):
    gross_sale: float
    revenue: float
    invoice_count: int
    invoice_qty: float
    boxes: float
    avg_ticket: float
    gross_per_unit: float
    delta: OutboundKPIDeltas


class InboundKPIDeltas(BaseModel):
    invoice_count: Delta
    invoice_value: Delta
    invoice_qty: Delta
    boxes: Delta


class InboundKPIResponse(BaseModel):
    invoice_count: int
    invoice_value: float
    invoice_qty: float
    boxes: float
    delta: InboundKPIDeltas


class DailyPoint(BaseModel):
    date: str
    gross_sale: float
    revenue: float
    invoice_count: int
    invoice_qty: float
    boxes: float
    inbound_qty: float
    inbound_boxes: float


class SlabShare(BaseModel):
    slab: str
    amount: float
    rate: float
    revenue: float


class MonthlyPoint(BaseModel):
    label: str
    date: str
    gross_sale: float
    revenue: float
    slab_breakdown: list[SlabShare]


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="'from' must be on or before 'to'")


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/kpi", response_model=OutboundKPIResponse)
async def get_outbound_kpis(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    mode: RevenueMode = RevenueMode.MARGINAL,
    db: AsyncSession = Depends(get_db),
):
    _check_range(start, end)
    return await reports.outbound_kpis(db, start, end, mode)


@router.get("/inbound-kpi", response_model=InboundKPIResponse)
async def get_inbound_kpis(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    db: AsyncSession = Depends(get_db),
):
    _check_range(start, end)
    return await reports.inbound_kpis(db, start, end)


@router.get("/daily", response_model=list[DailyPoint])
async def get_daily_series(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    mode: RevenueMode = RevenueMode.MARGINAL,
    db: AsyncSession = Depends(get_db),
):
    _check_range(start, end)
    return await reports.daily_series(db, start, end, mode)


@router.get("/monthly-revenue", response_model=list[MonthlyPoint])
async def get_monthly_revenue(
    mode: RevenueMode = RevenueMode.MARGINAL,
    db: AsyncSession = Depends(get_db),
):
    return await reports.monthly_revenue_series(db, mode)
