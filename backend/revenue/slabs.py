"""
Revenue Slab Tables — tiered commission rates over monthly gross sale.

Slab bounds are expressed in crores (1 crore = 10,000,000 in minor units);
rates are percentages (1.75 means 1.75%). Tables are tuples and are
validated once at import, so they are safe for unsynchronized reads.
"""

from __future__ import annotations

from typing import NamedTuple

CRORE = 10_000_000


class RevenueSlab(NamedTuple):
    min: float
    max: float | None  # None = open-ended top tier
    rate: float


CURRENT_SLABS: tuple[RevenueSlab, ...] = (
    RevenueSlab(0, 5, 1.75),
    RevenueSlab(5, 8, 1.65),
    RevenueSlab(8, 11, 1.55),
    RevenueSlab(11, 14, 1.45),
    RevenueSlab(14, 17, 1.35),
    RevenueSlab(17, 20, 1.25),
    RevenueSlab(20, None, 1.15),
)

LEGACY_SLABS: tuple[RevenueSlab, ...] = (
    RevenueSlab(0, 5, 1.75),
    RevenueSlab(5, 8, 1.69),
    RevenueSlab(8, 11, 1.57),
    RevenueSlab(11, 14, 1.47),
    RevenueSlab(14, 17, 1.39),
    RevenueSlab(17, None, 1.39),
)

SLAB_TABLES: dict[str, tuple[RevenueSlab, ...]] = {
    "current": CURRENT_SLABS,
    "legacy": LEGACY_SLABS,
}


def validate_slabs(slabs: tuple[RevenueSlab, ...]) -> None:
    """Raise ValueError unless slabs are contiguous, ascending and open-ended at the top."""
    if not slabs:
        raise ValueError("Slab table must contain at least one slab")

    for i, slab in enumerate(slabs):
        if slab.rate < 0:
            raise ValueError(f"Slab {i} has a negative rate: {slab.rate}")
        is_last = i == len(slabs) - 1
        if slab.max is None:
            if not is_last:
                raise ValueError(f"Only the last slab may be open-ended (slab {i})")
            continue
        if slab.max <= slab.min:
            raise ValueError(f"Slab {i} is empty or inverted: {slab.min}-{slab.max}")
        if is_last:
            raise ValueError("The last slab must be open-ended (max=None)")
        if slabs[i + 1].min != slab.max:
            raise ValueError(f"Slabs {i} and {i + 1} are not contiguous: {slab.max} != {slabs[i + 1].min}")


for _name, _table in SLAB_TABLES.items():
    validate_slabs(_table)


def get_slab_table(name: str) -> tuple[RevenueSlab, ...]:
    try:
        return SLAB_TABLES[name]
    except KeyError:
        raise ValueError(f"Unknown slab table '{name}'. Expected one of: {sorted(SLAB_TABLES)}") from None


def active_slabs() -> tuple[RevenueSlab, ...]:
    """Slab table selected by settings.slab_table."""
    from core.config import get_settings

    return get_slab_table(get_settings().slab_table)


def find_slab(
    amount_in_crores: float,
    slabs: tuple[RevenueSlab, ...],
    boundary: str = "upper",
) -> RevenueSlab:
    """
    Return the single slab containing an amount (in crores).

    boundary="upper": a slab owns its upper bound (min < amt <= max); zero
    belongs to the first slab. boundary="lower": min <= amt < max.
    Falls back to the last slab when nothing matches.
    """
    for i, slab in enumerate(slabs):
        if boundary == "lower":
            if amount_in_crores >= slab.min and (slab.max is None or amount_in_crores < slab.max):
                return slab
        else:
            above_min = amount_in_crores > slab.min or (i == 0 and amount_in_crores >= slab.min)
            if above_min and (slab.max is None or amount_in_crores <= slab.max):
                return slab
    return slabs[-1]


def slab_label(slab: RevenueSlab) -> str:
    upper = f"{slab.max:g}" if slab.max is not None else "∞"
    return f"{slab.min:g}-{upper} cr"
