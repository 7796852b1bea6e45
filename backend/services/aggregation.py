"""
Aggregation Service — daily summaries and monthly revenue.

Summaries are recomputed from ALL facts in an affected day / month and
upserted with every field replaced; they are never patched with deltas.
Calling a refresh twice with no fact changes in between yields the same
rows, so callers may refresh redundantly.

Must run after every insert, delete or checksum-scoped replace of facts.
Days and months are processed sequentially; any failure is raised as
AggregationError and no partial summary is left in the session's
transaction for the caller to commit.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import DailySummary, InboundFact, MonthlyRevenue, OutboundFact
from revenue.calculator import compute_revenue_flat, compute_revenue_marginal
from revenue.slabs import RevenueSlab

logger = structlog.get_logger()


class AggregationError(RuntimeError):
    """Recomputing a day or month failed; the refresh must not be committed."""


# ── Affected periods ───────────────────────────────────────────────────────


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def get_affected_dates(dates: Iterable[date | datetime]) -> list[date]:
    """Distinct calendar days, ascending."""
    return sorted({_as_date(d) for d in dates if d is not None})


def get_affected_months(dates: Iterable[date | datetime]) -> list[date]:
    """Distinct months as their first day, ascending."""
    return sorted({_as_date(d).replace(day=1) for d in dates if d is not None})


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[00:00 of day, 00:00 of the next day)."""
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def month_window(month: date) -> tuple[datetime, datetime]:
    """[00:00 on the 1st, 00:00 on the 1st of the next month)."""
    start = datetime.combine(month.replace(day=1), datetime.min.time())
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month


# ── Daily summary ──────────────────────────────────────────────────────────


def count_invoices(invoice_numbers: Iterable[str | None], policy: str) -> int:
    """
    "rows": every outbound row is an invoice.
    "distinct": non-blank invoice numbers, de-duplicated.
    """
    numbers = list(invoice_numbers)
    if policy == "distinct":
        return len({n.strip() for n in numbers if n and n.strip()})
    return len(numbers)


async def _recompute_day(db: AsyncSession, day: date, policy: str) -> DailySummary:
    start, end = day_bounds(day)

    outbound = (
        await db.execute(
            select(
                OutboundFact.invoice_no,
                OutboundFact.invoice_qty,
                OutboundFact.boxes,
                OutboundFact.gross_total,
            ).where(OutboundFact.invoice_date >= start, OutboundFact.invoice_date < end)
        )
    ).all()

    inbound = (
        await db.execute(
            select(
                func.coalesce(func.sum(InboundFact.invoice_qty), 0.0),
                func.coalesce(func.sum(InboundFact.boxes), 0.0),
            ).where(InboundFact.received_date >= start, InboundFact.received_date < end)
        )
    ).one()

    values = {
        "outbound_invoices": count_invoices((row.invoice_no for row in outbound), policy),
        "outbound_qty": float(sum(row.invoice_qty or 0 for row in outbound)),
        "outbound_boxes": float(sum(row.boxes or 0 for row in outbound)),
        "gross_sale": float(sum(row.gross_total or 0 for row in outbound)),
        "inbound_qty": float(inbound[0]),
        "inbound_boxes": float(inbound[1]),
    }

    summary = await db.get(DailySummary, day)
    if summary is None:
        summary = DailySummary(day=day, **values)
        db.add(summary)
    else:
        for key, value in values.items():
            setattr(summary, key, value)
        summary.updated_at = datetime.utcnow()
    await db.flush()
    return summary


async def refresh_daily_summary(
    db: AsyncSession,
    dates: Iterable[date | datetime],
    *,
    invoice_count_policy: str | None = None,
) -> list[DailySummary]:
    if invoice_count_policy is None:
        from core.config import get_settings

        invoice_count_policy = get_settings().invoice_count_policy

    refreshed: list[DailySummary] = []
    for day in get_affected_dates(dates):
        try:
            refreshed.append(await _recompute_day(db, day, invoice_count_policy))
        except Exception as exc:
            logger.error("aggregation.daily.failed", day=day.isoformat(), error=str(exc))
            raise AggregationError(f"Failed to refresh daily summary for {day.isoformat()}: {exc}") from exc

    if refreshed:
        logger.info("aggregation.daily.refreshed", days=len(refreshed), policy=invoice_count_policy)
    return refreshed


# ── Monthly revenue ────────────────────────────────────────────────────────


async def _recompute_month(db: AsyncSession, month: date, slabs: tuple[RevenueSlab, ...] | None) -> MonthlyRevenue:
    start, end = month_window(month)
    result = await db.execute(
        select(func.coalesce(func.sum(OutboundFact.gross_total), 0.0)).where(
            OutboundFact.invoice_date >= start,
            OutboundFact.invoice_date < end,
        )
    )
    gross_sale = float(result.scalar_one())
    marginal = compute_revenue_marginal(gross_sale, slabs)
    flat = compute_revenue_flat(gross_sale, slabs)

    key = start.date()
    row = await db.get(MonthlyRevenue, key)
    if row is None:
        row = MonthlyRevenue(month=key)
        db.add(row)
    row.gross_sale = gross_sale
    row.revenue_marginal = marginal
    row.revenue_flat = flat
    row.last_recalc_at = datetime.utcnow()
    await db.flush()
    return row


async def refresh_monthly_revenue(
    db: AsyncSession,
    months: Iterable[date | datetime],
    *,
    slabs: tuple[RevenueSlab, ...] | None = None,
) -> list[MonthlyRevenue]:
    refreshed: list[MonthlyRevenue] = []
    for month in get_affected_months(months):
        try:
            refreshed.append(await _recompute_month(db, month, slabs))
        except Exception as exc:
            logger.error("aggregation.monthly.failed", month=month.isoformat(), error=str(exc))
            raise AggregationError(f"Failed to refresh monthly revenue for {month:%Y-%m}: {exc}") from exc

    if refreshed:
        logger.info("aggregation.monthly.refreshed", months=len(refreshed))
    return refreshed


async def refresh_for_dates(
    db: AsyncSession,
    dates: Iterable[date | datetime],
    *,
    include_monthly: bool = True,
) -> None:
    """Refresh every day touched by `dates` and, optionally, their months."""
    dates = [d for d in dates if d is not None]
    await refresh_daily_summary(db, dates)
    if include_monthly:
        await refresh_monthly_revenue(db, dates)


async def _distinct_days(db: AsyncSession, column) -> set[date]:
    result = await db.execute(select(column).distinct())
    return {_as_date(value) for value in result.scalars().all() if value is not None}


async def rebuild_all(db: AsyncSession, *, start: date | None = None, end: date | None = None) -> dict:
    """
    Recompute every day and month that has facts or an existing summary row,
    optionally restricted to [start, end].
    """
    outbound_days = await _distinct_days(db, OutboundFact.invoice_date)
    days = outbound_days | await _distinct_days(db, InboundFact.received_date) | await _distinct_days(db, DailySummary.day)
    months = set(get_affected_months(outbound_days)) | await _distinct_days(db, MonthlyRevenue.month)

    if start is not None:
        days = {d for d in days if d >= start}
        months = {m for m in months if m >= start.replace(day=1)}
    if end is not None:
        days = {d for d in days if d <= end}
        months = {m for m in months if m <= end}

    daily = await refresh_daily_summary(db, days)
    monthly = await refresh_monthly_revenue(db, months)
    return {"days": len(daily), "months": len(monthly)}
