"""
Revenue Calculator — marginal (progressive) and flat (bracket) revenue.

Marginal: each slab's rate applies only to the portion of gross sale that
falls inside the slab, tax-bracket style. Continuous at slab boundaries.

Flat: the one slab containing the whole amount re-rates the ENTIRE amount.
Discontinuous at every slab boundary.

Both functions are pure and total: zero, negative and non-finite inputs
return 0.0 and nothing here raises.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import NamedTuple

from revenue.slabs import CRORE, RevenueSlab, active_slabs, find_slab, slab_label


class RevenueMode(str, Enum):
    MARGINAL = "marginal"
    FLAT = "flat"


class RevenueFigures(NamedTuple):
    marginal: float
    flat: float


class SlabPortion(NamedTuple):
    slab: RevenueSlab
    portion: float  # crores falling inside the slab
    revenue: float  # crores


def _chargeable_amount(gross_sale) -> float | None:
    """Gross sale as a positive finite float, or None when nothing is chargeable."""
    try:
        amount = float(gross_sale)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def marginal_portions(amount_in_crores: float, slabs: tuple[RevenueSlab, ...]) -> list[SlabPortion]:
    """Walk slabs in ascending order and return each contributing slab's share."""
    portions: list[SlabPortion] = []
    for slab in slabs:
        if amount_in_crores <= slab.min:
            break
        width = slab.max - slab.min if slab.max is not None else amount_in_crores - slab.min
        portion = min(amount_in_crores - slab.min, width)
        if portion <= 0:
            continue
        portions.append(SlabPortion(slab, portion, portion * slab.rate / 100))
    return portions


def compute_revenue_marginal(gross_sale: float, slabs: tuple[RevenueSlab, ...] | None = None) -> float:
    amount = _chargeable_amount(gross_sale)
    if amount is None:
        return 0.0
    slabs = slabs or active_slabs()

    amount_in_crores = amount / CRORE
    total = 0.0
    for part in marginal_portions(amount_in_crores, slabs):
        total += part.revenue
    return total * CRORE


def compute_revenue_flat(
    gross_sale: float,
    slabs: tuple[RevenueSlab, ...] | None = None,
    boundary: str | None = None,
) -> float:
    amount = _chargeable_amount(gross_sale)
    if amount is None:
        return 0.0
    slabs = slabs or active_slabs()
    if boundary is None:
        from core.config import get_settings

        boundary = get_settings().flat_bracket_boundary

    slab = find_slab(amount / CRORE, slabs, boundary)
    return amount * slab.rate / 100


def compute_monthly_revenue(gross_sale: float, slabs: tuple[RevenueSlab, ...] | None = None) -> RevenueFigures:
    return RevenueFigures(
        marginal=compute_revenue_marginal(gross_sale, slabs),
        flat=compute_revenue_flat(gross_sale, slabs),
    )


def compute_revenue(gross_sale: float, mode: RevenueMode | str = RevenueMode.MARGINAL) -> float:
    if RevenueMode(mode) is RevenueMode.FLAT:
        return compute_revenue_flat(gross_sale)
    return compute_revenue_marginal(gross_sale)


def revenue_breakdown(
    gross_sale: float,
    mode: RevenueMode | str = RevenueMode.MARGINAL,
    slabs: tuple[RevenueSlab, ...] | None = None,
) -> list[dict]:
    """
    Per-slab lines behind compute_revenue, in the same units as gross_sale.

    Marginal yields one line per contributing slab; flat yields the single
    bracket that re-rates the whole amount. Line revenues sum to the total.
    """
    amount = _chargeable_amount(gross_sale)
    if amount is None:
        return []
    slabs = slabs or active_slabs()

    if RevenueMode(mode) is RevenueMode.FLAT:
        from core.config import get_settings

        slab = find_slab(amount / CRORE, slabs, get_settings().flat_bracket_boundary)
        return [{"slab": slab_label(slab), "amount": amount, "rate": slab.rate, "revenue": amount * slab.rate / 100}]

    return [
        {
            "slab": slab_label(part.slab),
            "amount": part.portion * CRORE,
            "rate": part.slab.rate,
            "revenue": part.revenue * CRORE,
        }
        for part in marginal_portions(amount / CRORE, slabs)
    ]
