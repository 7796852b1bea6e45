"""
Spreadsheet Parser — warehouse MIS workbooks into validated fact rows.

Two-tier failure model:
  - Structural errors (unreadable workbook, sheet not found, required column
    missing, no data) raise StructuralError and abort the whole parse.
  - Row errors (a cell that cannot be coerced, a failed constraint) divert
    that row to rejected_rows with a reason, and parsing continues.

Blank rows are skipped silently, so for every parse:
    total_rows == len(valid_rows) + len(rejected_rows) + skipped_blank
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from openpyxl import load_workbook
from openpyxl.workbook import Workbook
from pydantic import BaseModel, ValidationError

from ingest.coercion import (
    clean_text,
    coerce_date,
    coerce_number,
    is_blank_row,
    is_missing,
    to_jsonable,
)
from ingest.columns import INBOUND_COLUMN_ALIASES, OUTBOUND_COLUMN_ALIASES, build_column_map
from ingest.errors import RowError, StructuralError
from ingest.schemas import InboundRow, OutboundRow, describe_validation_error

logger = structlog.get_logger()


# ── Layouts ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SheetLayout:
    """Where a record type lives in its workbook and how its cells coerce."""

    record_type: str  # "INBOUND" / "OUTBOUND"
    sheet_label: str
    header_row: int  # 0-based; rows above it (e.g. a totals row) are ignored
    aliases: dict[str, list[str]]
    required: tuple[str, ...]
    model: type[BaseModel]
    numeric_fields: frozenset[str]
    date_field: str  # defaults to "now" when the cell is empty
    optional_date_fields: frozenset[str] = frozenset()


INBOUND_LAYOUT = SheetLayout(
    record_type="INBOUND",
    sheet_label="PIPO & BIBO Inward",
    header_row=0,
    aliases=INBOUND_COLUMN_ALIASES,
    required=("received_date", "invoice_no", "invoice_value", "invoice_qty", "boxes"),
    model=InboundRow,
    numeric_fields=frozenset({"invoice_value", "invoice_qty", "boxes"}),
    date_field="received_date",
)

OUTBOUND_LAYOUT = SheetLayout(
    record_type="OUTBOUND",
    sheet_label="Outward MIS",
    header_row=1,
    aliases=OUTBOUND_COLUMN_ALIASES,
    required=("invoice_no", "invoice_qty", "boxes", "gross_total"),
    model=OutboundRow,
    numeric_fields=frozenset({"invoice_qty", "boxes", "gross_total"}),
    date_field="invoice_date",
    optional_date_fields=frozenset({"dispatched_date"}),
)


# ── Result containers ──────────────────────────────────────────────────────


@dataclass
class RejectedRowRecord:
    row_number: int  # 1-based spreadsheet row
    data: dict[str, Any]
    reason: str


@dataclass
class ParseResult:
    valid_rows: list[Any] = field(default_factory=list)
    rejected_rows: list[RejectedRowRecord] = field(default_factory=list)
    skipped_blank: int = 0
    sheet_name: str = ""
    headers: list[str] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.valid_rows) + len(self.rejected_rows) + self.skipped_blank


# ── Workbook access ────────────────────────────────────────────────────────


def _open_workbook(content: bytes) -> Workbook:
    try:
        return load_workbook(io.BytesIO(content), data_only=True)
    except Exception as exc:
        raise StructuralError(f"Could not read the uploaded file as an Excel workbook: {exc}") from exc


def find_sheet(sheet_names: list[str], label: str) -> str:
    """Exact, case-insensitive, whitespace-trimmed sheet lookup."""
    target = label.strip().lower()
    for name in sheet_names:
        if str(name).strip().lower() == target:
            return name
    available = ", ".join(str(n) for n in sheet_names) or "(none)"
    raise StructuralError(f'Could not find the "{label}" sheet in the Excel file. Available sheets: {available}')


def read_sheet_rows(content: bytes, label: str) -> tuple[str, list[list[Any]]]:
    """Every row of the sheet, blank ones included, so row numbers stay exact."""
    workbook = _open_workbook(content)
    try:
        sheet_name = find_sheet(workbook.sheetnames, label)
        rows = [list(row) for row in workbook[sheet_name].iter_rows(values_only=True)]
    finally:
        workbook.close()
    return sheet_name, rows


# ── Row mapping ────────────────────────────────────────────────────────────


def unique_labels(headers: list[str]) -> list[str]:
    """
    Keys for the raw row mapping: blank headers become "Column N" and
    repeats get a suffix, so "Remarks", "Remarks" -> "Remarks", "Remarks (2)".
    """
    labels: list[str] = []
    seen: set[str] = set()
    for i, header in enumerate(headers):
        base = header or f"Column {i + 1}"
        label, n = base, 1
        while label in seen:
            n += 1
            label = f"{base} ({n})"
        seen.add(label)
        labels.append(label)
    return labels


def _coerce_fields(
    row: list[Any],
    headers: list[str],
    column_map: dict[str, int],
    layout: SheetLayout,
    now: datetime,
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field_name, idx in column_map.items():
        raw = row[idx] if idx < len(row) else None
        header = headers[idx]

        if field_name in layout.numeric_fields:
            if is_missing(raw):
                values[field_name] = 0.0
                continue
            number = coerce_number(raw)
            if number is None:
                raise RowError(f"{header}: could not parse {raw!r} as a number")
            values[field_name] = number
        elif field_name == layout.date_field:
            if is_missing(raw):
                values[field_name] = now
                continue
            parsed = coerce_date(raw)
            if parsed is None:
                raise RowError(f"{header}: could not parse {raw!r} as a date")
            values[field_name] = parsed
        elif field_name in layout.optional_date_fields:
            values[field_name] = None if is_missing(raw) else coerce_date(raw)
        else:
            values[field_name] = clean_text(raw)

    values.setdefault(layout.date_field, now)
    for numeric in layout.numeric_fields:
        values.setdefault(numeric, 0.0)
    return values


def parse_workbook(content: bytes, layout: SheetLayout, *, now: datetime | None = None) -> ParseResult:
    """
    Parse one record type out of a workbook.

    Raises StructuralError for shape problems; every per-row problem is
    returned in ParseResult.rejected_rows instead.
    """
    sheet_name, rows = read_sheet_rows(content, layout.sheet_label)
    if len(rows) <= layout.header_row:
        raise StructuralError(f'The "{sheet_name}" sheet has no header row (expected on row {layout.header_row + 1})')

    headers = [clean_text(h) or "" for h in rows[layout.header_row]]
    column_map = build_column_map(headers, layout.aliases)
    missing = [col for col in layout.required if col not in column_map]
    if missing:
        available = ", ".join(h for h in headers if h) or "(none)"
        raise StructuralError(
            f"Required column(s) not found: {', '.join(missing)}. Available columns: {available}"
        )

    now = now or datetime.now()
    labels = unique_labels(headers)
    result = ParseResult(sheet_name=sheet_name, headers=labels)

    first_data_row = layout.header_row + 1
    for offset, row in enumerate(rows[first_data_row:]):
        row_number = first_data_row + offset + 1
        if is_blank_row(row):
            result.skipped_blank += 1
            continue
        raw = {label: row[i] if i < len(row) else None for i, label in enumerate(labels)}

        try:
            values = _coerce_fields(row, labels, column_map, layout, now)
            result.valid_rows.append(layout.model.model_validate(values))
        except ValidationError as exc:
            reason = describe_validation_error(exc)
        except RowError as exc:
            reason = str(exc)
        else:
            continue

        result.rejected_rows.append(
            RejectedRowRecord(
                row_number=row_number,
                data={label: to_jsonable(value) for label, value in raw.items()},
                reason=reason,
            )
        )

    if not result.valid_rows and not result.rejected_rows:
        raise StructuralError("No data rows found in Excel file")

    logger.info(
        "ingest.parse.completed",
        record_type=layout.record_type,
        sheet=sheet_name,
        valid=len(result.valid_rows),
        rejected=len(result.rejected_rows),
        blank=result.skipped_blank,
    )
    return result


def parse_inbound(content: bytes, *, now: datetime | None = None) -> ParseResult:
    return parse_workbook(content, INBOUND_LAYOUT, now=now)


def parse_outbound(content: bytes, *, now: datetime | None = None) -> ParseResult:
    return parse_workbook(content, OUTBOUND_LAYOUT, now=now)


LAYOUTS = {"INBOUND": INBOUND_LAYOUT, "OUTBOUND": OUTBOUND_LAYOUT}
