"""
Row shapes for ingested facts.

Quantities, box counts and money totals must be non-negative; a row that
violates a constraint is rejected with the pydantic message as its reason.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, ValidationError


class InboundRow(BaseModel):
    received_date: datetime
    invoice_no: str | None = None
    invoice_value: float = Field(0, ge=0)
    party_name: str | None = None
    invoice_qty: float = Field(0, ge=0)
    boxes: float = Field(0, ge=0)
    type: str | None = None
    article_no: str | None = None


class OutboundRow(BaseModel):
    invoice_no: str | None = None
    invoice_date: datetime
    dispatched_date: datetime | None = None
    party_name: str | None = None
    invoice_qty: float = Field(0, ge=0)
    boxes: float = Field(0, ge=0)
    gross_total: float = Field(0, ge=0)


def describe_validation_error(exc: ValidationError) -> str:
    """Human-readable rejection reason from a pydantic ValidationError."""
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "row"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "Validation error: " + ", ".join(parts)
