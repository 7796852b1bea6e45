"""
Reporting — dashboard KPIs and chart series read from summaries and facts.

Date ranges are calendar days: `start` is included from 00:00 and `end`
is included through the end of its day. Deltas compare against the
equal-length window immediately before `start`.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import DailySummary, InboundFact, MonthlyRevenue, OutboundFact
from revenue.calculator import RevenueMode, compute_revenue, revenue_breakdown
from services.aggregation import get_affected_months, month_window

logger = structlog.get_logger()


def range_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """[start 00:00, day after end 00:00)."""
    if end < start:
        raise ValueError("'from' must be on or before 'to'")
    return (
        datetime.combine(start, datetime.min.time()),
        datetime.combine(end + timedelta(days=1), datetime.min.time()),
    )


def previous_period(start: date, end: date) -> tuple[date, date]:
    length = (end - start).days + 1
    prev_end = start - timedelta(days=1)
    return prev_end - timedelta(days=length - 1), prev_end


def calculate_delta(current: float, previous: float) -> dict[str, float]:
    absolute = current - previous
    percentage = 0.0 if previous == 0 else absolute / previous * 100
    return {"absolute": absolute, "percentage": percentage}


# ── Outbound ───────────────────────────────────────────────────────────────


async def _outbound_totals(db: AsyncSession, start: date, end: date) -> dict[str, float]:
    result = await db.execute(
        select(
            func.coalesce(func.sum(DailySummary.gross_sale), 0.0),
            func.coalesce(func.sum(DailySummary.outbound_invoices), 0),
            func.coalesce(func.sum(DailySummary.outbound_qty), 0.0),
            func.coalesce(func.sum(DailySummary.outbound_boxes), 0.0),
        ).where(DailySummary.day >= start, DailySummary.day <= end)
    )
    gross_sale, invoices, qty, boxes = result.one()
    return {
        "gross_sale": float(gross_sale),
        "invoice_count": int(invoices),
        "invoice_qty": float(qty),
        "boxes": float(boxes),
    }


async def outbound_kpis(
    db: AsyncSession,
    start: date,
    end: date,
    mode: RevenueMode | str = RevenueMode.MARGINAL,
) -> dict[str, Any]:
    range_bounds(start, end)
    current = await _outbound_totals(db, start, end)
    previous = await _outbound_totals(db, *previous_period(start, end))

    revenue = compute_revenue(current["gross_sale"], mode)
    previous_revenue = compute_revenue(previous["gross_sale"], mode)

    kpis = {
        **current,
        "revenue": revenue,
        "avg_ticket": current["gross_sale"] / current["invoice_count"] if current["invoice_count"] else 0.0,
        "gross_per_unit": current["gross_sale"] / current["invoice_qty"] if current["invoice_qty"] else 0.0,
        "delta": {
            "gross_sale": calculate_delta(current["gross_sale"], previous["gross_sale"]),
            "revenue": calculate_delta(revenue, previous_revenue),
            "invoice_count": calculate_delta(current["invoice_count"], previous["invoice_count"]),
            "invoice_qty": calculate_delta(current["invoice_qty"], previous["invoice_qty"]),
            "boxes": calculate_delta(current["boxes"], previous["boxes"]),
        },
    }
    logger.debug("reports.outbound_kpis", start=start.isoformat(), end=end.isoformat(), mode=str(mode))
    return kpis


# ── Inbound ────────────────────────────────────────────────────────────────


async def _inbound_totals(db: AsyncSession, start: date, end: date) -> dict[str, float]:
    window_start, window_end = range_bounds(start, end)
    result = await db.execute(
        select(
            func.count(InboundFact.id),
            func.coalesce(func.sum(InboundFact.invoice_value), 0.0),
            func.coalesce(func.sum(InboundFact.invoice_qty), 0.0),
            func.coalesce(func.sum(InboundFact.boxes), 0.0),
        ).where(InboundFact.received_date >= window_start, InboundFact.received_date < window_end)
    )
    count, value, qty, boxes = result.one()
    return {
        "invoice_count": int(count),
        "invoice_value": float(value),
        "invoice_qty": float(qty),
        "boxes": float(boxes),
    }


async def inbound_kpis(db: AsyncSession, start: date, end: date) -> dict[str, Any]:
    """Every inbound row counts as one invoice."""
    current = await _inbound_totals(db, start, end)
    previous = await _inbound_totals(db, *previous_period(start, end))
    return {
        **current,
        "delta": {key: calculate_delta(current[key], previous[key]) for key in current},
    }


# ── Series ─────────────────────────────────────────────────────────────────


async def daily_series(
    db: AsyncSession,
    start: date,
    end: date,
    mode: RevenueMode | str = RevenueMode.MARGINAL,
) -> list[dict[str, Any]]:
    range_bounds(start, end)
    result = await db.execute(
        select(DailySummary)
        .where(DailySummary.day >= start, DailySummary.day <= end)
        .order_by(DailySummary.day.asc())
    )
    return [
        {
            "date": row.day.isoformat(),
            "gross_sale": row.gross_sale,
            "revenue": compute_revenue(row.gross_sale, mode),
            "invoice_count": row.outbound_invoices,
            "invoice_qty": row.outbound_qty,
            "boxes": row.outbound_boxes,
            "inbound_qty": row.inbound_qty,
            "inbound_boxes": row.inbound_boxes,
        }
        for row in result.scalars().all()
    ]


async def monthly_revenue_series(
    db: AsyncSession,
    mode: RevenueMode | str = RevenueMode.MARGINAL,
) -> list[dict[str, Any]]:
    """One point per month that has outbound facts, oldest first, with its per-slab revenue lines."""
    mode = RevenueMode(mode)
    invoice_dates = (await db.execute(select(OutboundFact.invoice_date).distinct())).scalars().all()
    months = get_affected_months(invoice_dates)

    stored = {
        row.month: row
        for row in (await db.execute(select(MonthlyRevenue).where(MonthlyRevenue.month.in_(months)))).scalars()
    }

    series = []
    for month in months:
        row = stored.get(month)
        if row is not None:
            gross_sale = row.gross_sale
            revenue = row.revenue_marginal if mode is RevenueMode.MARGINAL else row.revenue_flat
        else:
            window_start, window_end = month_window(month)
            gross_sale = float(
                (
                    await db.execute(
                        select(func.coalesce(func.sum(OutboundFact.gross_total), 0.0)).where(
                            OutboundFact.invoice_date >= window_start,
                            OutboundFact.invoice_date < window_end,
                        )
                    )
                ).scalar_one()
            )
            revenue = compute_revenue(gross_sale, mode)
        series.append(
            {
                "label": month.strftime("%b %Y"),
                "date": month.strftime("%Y-%m"),
                "gross_sale": gross_sale,
                "revenue": revenue,
                "slab_breakdown": revenue_breakdown(gross_sale, mode),
            }
        )
    return series
