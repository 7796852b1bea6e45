"""
Tolerant cell coercion for human-entered spreadsheets.

Every coercer returns the parsed value or None and never raises: callers
decide whether None means "use a default" or "reject the row".
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd
import structlog

logger = structlog.get_logger()

# Spreadsheet serial dates count days from 1899-12-30 (absorbs the 1900 leap-year bug).
SPREADSHEET_EPOCH = datetime(1899, 12, 30)

_NULL_TOKENS = {"-", "na", "n/a"}
_CURRENCY_RE = re.compile(r"(?i)\b(?:rs\.?|inr|usd)|[₹$€£¥]")
_DMY_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
_EMBEDDED_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return math.isnan(value)
    return value is pd.NaT


def is_missing(value: Any) -> bool:
    """Blank, a placeholder token ('-', 'NA', 'N/A') or a spreadsheet error code ('#N/A')."""
    if is_blank(value):
        return True
    if isinstance(value, str):
        text = value.strip()
        return text.lower() in _NULL_TOKENS or text.startswith("#")
    return False


def is_blank_row(row: Mapping[str, Any] | Iterable[Any]) -> bool:
    """A row is blank iff every cell is None, empty/whitespace text or NaN."""
    cells = row.values() if isinstance(row, Mapping) else row
    return all(is_blank(value) for value in cells)


def normalize_column_name(name: Any) -> str:
    return re.sub(r"\s+", "_", str(name or "").strip().lower())


def coerce_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    if not isinstance(value, str):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return None if math.isnan(number) else number

    text = value.strip()
    if text == "" or text.lower() in _NULL_TOKENS or text.startswith("#"):
        return None

    cleaned = _CURRENCY_RE.sub("", text)
    cleaned = re.sub(r"[,\s]", "", cleaned)
    # Accounting negatives: "(500)" is -500, an explicit sign inside wins.
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        negative = not cleaned.startswith(("+", "-"))

    try:
        number = float(cleaned)
    except ValueError:
        match = _EMBEDDED_NUMBER_RE.search(cleaned)
        if not match:
            return None
        number = float(match.group(0))

    if math.isnan(number) or math.isinf(number):
        return None
    return -number if negative else number


def coerce_date(value: Any) -> datetime | None:
    if is_blank(value):
        return None

    if isinstance(value, pd.Timestamp):
        return value.tz_localize(None).to_pydatetime() if value.tzinfo else value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value <= 0:
            logger.warning("coerce_date.bad_serial", value=value)
            return None
        try:
            return SPREADSHEET_EPOCH + timedelta(days=float(value))
        except (OverflowError, ValueError):
            logger.warning("coerce_date.bad_serial", value=value)
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            logger.warning("coerce_date.bad_day_month_year", value=text)
            return None

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        logger.warning("coerce_date.unparseable", value=text)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed.to_pydatetime()


def clean_text(value: Any) -> str | None:
    """Stripped text, None when blank. Whole floats render without '.0'."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def to_jsonable(value: Any) -> Any:
    """Raw cell value in a form that survives a JSON column."""
    if is_blank(value):
        return None if not isinstance(value, str) else value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and math.isinf(value):
        return str(value)
    if hasattr(value, "item"):
        return value.item()
    return value
