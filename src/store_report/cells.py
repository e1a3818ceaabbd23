"""Cell classification and normalisation — pure functions, no side effects."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from numbers import Real
from typing import Any

from store_report.models import (
    EMPTY,
    Boolean,
    CellValue,
    DateValue,
    Empty,
    Number,
    Text,
)

DEFAULT_DATE_SERIAL_THRESHOLD = 10000

_NUMERIC_DATE_RE = re.compile(r"^\s*(\d{1,4})[/-](\d{1,2})[/-](\d{1,4})")
_WEEKDAY_RE = re.compile(r"(星期|周)[一二三四五六日天]")
_CONTROL_CHARS_RE = re.compile(r"[\r\n\t]")
_QUANTITY_NOISE_RE = re.compile(r"[\s,]")
_QUANTITY_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)

# Excel's 1900 date system, including the phantom 1900-02-29.
_EXCEL_EPOCH = datetime(1899, 12, 30)
_WEEKDAYS_ZH = ("星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日")


# ── Boundary constructor ────────────────────────────────────────


def to_cell_value(raw: Any) -> CellValue:
    """Wrap a raw decoded value in the matching :data:`CellValue` variant."""
    if raw is None:
        return EMPTY
    if isinstance(raw, (Empty, Text, Number, Boolean, DateValue)):
        return raw
    if isinstance(raw, bool):
        return Boolean(raw)
    if isinstance(raw, datetime):
        return DateValue(raw.replace(tzinfo=None) if raw.tzinfo else raw)
    if isinstance(raw, date):
        return DateValue(datetime(raw.year, raw.month, raw.day))
    if isinstance(raw, Real):
        return Number(float(raw))
    if isinstance(raw, str):
        return Text(raw) if raw else EMPTY
    return Text(str(raw))


# ── Classification ──────────────────────────────────────────────


def is_meaningful(value: CellValue) -> bool:
    """Return True when *value* counts as content (not blank)."""
    if isinstance(value, Number):
        return math.isfinite(value.value)
    if isinstance(value, (Boolean, DateValue)):
        return True
    if isinstance(value, Text):
        return bool(value.value.strip())
    return False


def looks_like_date(
    value: CellValue, threshold: float = DEFAULT_DATE_SERIAL_THRESHOLD
) -> bool:
    """Heuristic date detection.

    Numbers only count above *threshold*: small integers are far more likely
    to be quantities than date serials.
    """
    if isinstance(value, DateValue):
        return True
    if isinstance(value, Number):
        return math.isfinite(value.value) and value.value > threshold
    if isinstance(value, Text):
        return bool(_NUMERIC_DATE_RE.match(value.value) or _WEEKDAY_RE.search(value.value))
    return False


def _number_text(number: float) -> str:
    if math.isfinite(number) and number.is_integer():
        return str(int(number))
    return repr(number)


def sanitize_text(value: CellValue) -> str:
    """Stringify *value* and drop CR/LF/TAB plus surrounding whitespace."""
    if isinstance(value, Empty):
        return ""
    if isinstance(value, Number):
        raw = _number_text(value.value)
    elif isinstance(value, Boolean):
        raw = "TRUE" if value.value else "FALSE"
    elif isinstance(value, DateValue):
        raw = value.value.date().isoformat()
    else:
        raw = value.value
    return _CONTROL_CHARS_RE.sub("", raw).strip()


def row_is_meaningful(row: list[CellValue]) -> bool:
    return any(is_meaningful(cell) for cell in row)


# ── Quantities ──────────────────────────────────────────────────


def parse_quantity(value: CellValue) -> float | None:
    """Return a strictly positive quantity, or None for "no data".

    Zero and negative values mean "not carried" and are rejected like
    unparsable text.
    """
    if isinstance(value, Number):
        number = value.value
    elif isinstance(value, Text):
        token = _QUANTITY_NOISE_RE.sub("", value.value)
        if not _QUANTITY_RE.fullmatch(token):
            return None
        number = float(token)
    else:
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def format_quantity(quantity: float) -> str:
    """Integers without decimals, otherwise at most two decimals."""
    if float(quantity).is_integer():
        return str(int(quantity))
    text = f"{quantity:.2f}".rstrip("0").rstrip(".")
    return text


# ── Dates ───────────────────────────────────────────────────────


def serial_to_datetime(serial: float) -> datetime:
    """Convert an Excel (1900 system) date serial to a datetime."""
    return _EXCEL_EPOCH + timedelta(days=serial)


def _parse_text_date(text: str) -> date | None:
    match = _NUMERIC_DATE_RE.match(text)
    if not match:
        return None
    first, second, third = match.groups()
    if len(first) == 4:
        year, month, day = int(first), int(second), int(third)
    elif len(third) == 4:
        month, day, year = int(first), int(second), int(third)
    else:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _to_date(value: CellValue) -> date | None:
    if isinstance(value, DateValue):
        return value.value.date()
    if isinstance(value, Number) and math.isfinite(value.value):
        try:
            return serial_to_datetime(value.value).date()
        except OverflowError:
            return None
    if isinstance(value, Text):
        return _parse_text_date(value.value)
    return None


def format_date_label(value: CellValue) -> str:
    """Render a date cell as ``2024年05月01日 星期三``.

    Cells that look like dates but carry no parseable day (e.g. a bare
    weekday) fall back to their sanitized text.
    """
    day = _to_date(value)
    if day is None:
        return sanitize_text(value)
    return f"{day.year:04d}年{day.month:02d}月{day.day:02d}日 {_WEEKDAYS_ZH[day.weekday()]}"
