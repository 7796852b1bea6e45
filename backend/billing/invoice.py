"""
Billing Assembler — itemized tiered revenue for a month's invoice.

billing amount = max(month gross sale, minimum guarantee), decomposed
through the slab table exactly like marginal revenue, keeping each
contributing slab's subtotal.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import DailySummary
from revenue.calculator import marginal_portions
from revenue.slabs import CRORE, RevenueSlab, active_slabs

logger = structlog.get_logger()

_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass
class SlabBreakdown:
    range: str
    rate: float
    amount: float


@dataclass
class BillingData:
    gross_sale: float
    min_guarantee: float
    slab_breakdown: list[SlabBreakdown] = field(default_factory=list)
    total_revenue: float = 0.0

    @property
    def billing_amount(self) -> float:
        return max(self.gross_sale, self.min_guarantee)

    def to_dict(self) -> dict:
        return {
            "grossSale": self.gross_sale,
            "minGuarantee": self.min_guarantee,
            "slabBreakdown": [asdict(entry) for entry in self.slab_breakdown],
            "totalRevenue": self.total_revenue,
        }


def parse_month(value: str) -> date:
    """Parse 'YYYY-MM' into the first day of that month."""
    match = _MONTH_RE.match((value or "").strip())
    if not match:
        raise ValueError("Invalid month format. Use YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise ValueError("Invalid month format. Use YYYY-MM")
    return date(year, month, 1)


def month_bounds(month: date) -> tuple[date, date]:
    """First and last calendar day of the month containing `month`."""
    start = month.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def _range_label(slab: RevenueSlab) -> str:
    lower = f"{slab.min * CRORE:.0f}"
    if slab.max is None:
        return f"{lower}+"
    return f"{lower} - {slab.max * CRORE:.0f}"


def assemble_billing(
    gross_sale: float,
    *,
    minimum_guarantee: float | None = None,
    slabs: tuple[RevenueSlab, ...] | None = None,
) -> BillingData:
    if minimum_guarantee is None:
        from core.config import get_settings

        minimum_guarantee = get_settings().minimum_guarantee
    slabs = slabs or active_slabs()

    data = BillingData(gross_sale=gross_sale, min_guarantee=minimum_guarantee)
    for part in marginal_portions(data.billing_amount / CRORE, slabs):
        amount = part.revenue * CRORE
        data.slab_breakdown.append(SlabBreakdown(range=_range_label(part.slab), rate=part.slab.rate, amount=amount))
        data.total_revenue += amount
    return data


async def get_month_billing(db: AsyncSession, month: date) -> BillingData:
    """Assemble billing for a month from its daily summaries."""
    start, end = month_bounds(month)
    result = await db.execute(
        select(func.coalesce(func.sum(DailySummary.gross_sale), 0.0)).where(
            DailySummary.day >= start,
            DailySummary.day <= end,
        )
    )
    gross_sale = float(result.scalar_one())

    data = assemble_billing(gross_sale)
    logger.info(
        "billing.assembled",
        month=start.isoformat(),
        gross_sale=gross_sale,
        floored=gross_sale < data.min_guarantee,
        total_revenue=data.total_revenue,
    )
    return data
