"""Data models used across the package."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from datetime import datetime
from numbers import Integral
from typing import Any, Union

from openpyxl.utils.cell import column_index_from_string, get_column_letter

# ── Cell values ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Empty:
    """A blank or missing cell."""


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class DateValue:
    value: datetime


CellValue = Union[Empty, Text, Number, Boolean, DateValue]
Row = list[CellValue]

EMPTY = Empty()


def cell_to_json(cell: CellValue) -> Any:
    """Encode *cell* as a JSON-compatible scalar (dates become ``{"date": iso}``)."""
    if isinstance(cell, Empty):
        return ""
    if isinstance(cell, DateValue):
        return {"date": cell.value.isoformat()}
    if isinstance(cell, Number):
        if not math.isfinite(cell.value):
            return None
        if float(cell.value).is_integer():
            return int(cell.value)
        return cell.value
    return cell.value


def cell_from_json(payload: Any) -> CellValue:
    """Inverse of :func:`cell_to_json`."""
    if payload is None or payload == "":
        return EMPTY
    if isinstance(payload, dict):
        raw = payload.get("date")
        if not isinstance(raw, str):
            raise ValueError(f"Invalid date cell payload: {payload!r}")
        return DateValue(datetime.fromisoformat(raw))
    if isinstance(payload, bool):
        return Boolean(payload)
    if isinstance(payload, (int, float)):
        return Number(float(payload))
    if isinstance(payload, str):
        return Text(payload)
    raise TypeError(f"Unsupported cell payload of type {type(payload).__name__}")


# ── Geometry ────────────────────────────────────────────────────


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


@dataclass(frozen=True)
class Bounds:
    """Inclusive, 0-based rectangle of meaningful cells in a sheet."""

    min_row: int
    max_row: int
    min_col: int
    max_col: int

    def __post_init__(self) -> None:
        for f in fields(self):
            _to_non_negative_int(getattr(self, f.name), f.name)
        if self.min_row > self.max_row:
            raise ValueError("min_row must be <= max_row")
        if self.min_col > self.max_col:
            raise ValueError("min_col must be <= max_col")

    @property
    def width(self) -> int:
        return self.max_col - self.min_col + 1

    @property
    def height(self) -> int:
        return self.max_row - self.min_row + 1

    def to_ref(self) -> str:
        """Encode as an A1-style range, e.g. ``"B2:J40"``."""
        start = f"{get_column_letter(self.min_col + 1)}{self.min_row + 1}"
        end = f"{get_column_letter(self.max_col + 1)}{self.max_row + 1}"
        return f"{start}:{end}"


@dataclass
class Grid:
    """Rows of cells whose ``[0][0]`` sits at sheet ``(origin_row, origin_col)``."""

    rows: list[Row] = field(default_factory=list)
    origin_row: int = 0
    origin_col: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def cell(self, row: int, col: int) -> CellValue:
        """Return the cell at grid position, ``EMPTY`` when out of range."""
        if row < 0 or col < 0 or row >= len(self.rows):
            return EMPTY
        cells = self.rows[row]
        if col >= len(cells):
            return EMPTY
        return cells[col]

    def column_for(self, letter: str) -> int:
        """Grid-relative index of sheet column *letter* (may be negative)."""
        return column_index(letter) - self.origin_col


def column_index(letter: str) -> int:
    """0-based index of a column letter (``"A"`` -> 0)."""
    return column_index_from_string(letter.strip().upper()) - 1


# ── Extraction results ──────────────────────────────────────────


@dataclass(frozen=True)
class DateBlock:
    """Rows ``[date_row, end)`` that belong to one date."""

    date_row: int
    date_label: str
    rows: range

    @property
    def end(self) -> int:
        return self.rows.stop


@dataclass(frozen=True)
class Item:
    product: str
    quantity: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.quantity) or self.quantity <= 0:
            raise ValueError("quantity must be a finite number > 0")


@dataclass
class Store:
    """A store column of one date block, with the items found under it."""

    name: str
    column: int
    items: list[Item] = field(default_factory=list)


@dataclass(frozen=True)
class SheetReport:
    sheet_name: str
    range_label: str = ""
    blocks: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.blocks


@dataclass(frozen=True)
class WorkbookReport:
    """Sheets that produced content, in workbook order."""

    file_name: str
    sheet_count: int
    sheets: tuple[SheetReport, ...] = ()


# ── Input boundary ──────────────────────────────────────────────


@dataclass
class SheetSource:
    """Sparse ``{"A1": raw_value}`` map as handed over by a decoder.

    Keys starting with ``!`` carry sheet metadata (e.g. ``"!ref"``) and are
    never treated as cells.
    """

    cells: Mapping[str, Any] = field(default_factory=dict)


SheetData = Union[SheetSource, Sequence[Sequence[Any]]]


@dataclass
class Workbook:
    sheet_names: list[str] = field(default_factory=list)
    sheets: dict[str, SheetData] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [name for name in self.sheet_names if name not in self.sheets]
        if missing:
            raise ValueError(f"Sheets listed without data: {', '.join(missing)}")


# ── Configuration ───────────────────────────────────────────────


@dataclass(frozen=True)
class ReportLayout:
    """Sheet layout conventions the extraction engine relies on.

    ``name_fallback_offsets`` are relative to the anchor column and are tried
    before the absolute ``name_fallback_columns`` when a row's anchor cell
    holds no product name.
    """

    anchor_column: str = "H"
    store_column: str = "I"
    name_fallback_offsets: tuple[int, ...] = (-1,)
    name_fallback_columns: tuple[str, ...] = ("B",)
    date_serial_threshold: float = 10000
    max_scan_rows: int = 100
    quantity_unit: str = "pcs"

    def __post_init__(self) -> None:
        for name in ("anchor_column", "store_column"):
            _check_column_letter(getattr(self, name), name)
        for letter in self.name_fallback_columns:
            _check_column_letter(letter, "name_fallback_columns")
        for offset in self.name_fallback_offsets:
            if isinstance(offset, bool) or not isinstance(offset, Integral):
                raise TypeError("name_fallback_offsets items must be integers")
        if isinstance(self.date_serial_threshold, bool) or not math.isfinite(
            float(self.date_serial_threshold)
        ):
            raise ValueError("date_serial_threshold must be a finite number")
        if _to_non_negative_int(self.max_scan_rows, "max_scan_rows") == 0:
            raise ValueError("max_scan_rows must be > 0")

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> ReportLayout:
        """Build a layout from ``key=value`` profile entries (all strings)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown layout keys: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, raw in values.items():
            raw = raw.strip()
            try:
                if key in ("anchor_column", "store_column", "quantity_unit"):
                    kwargs[key] = raw
                elif key == "name_fallback_columns":
                    kwargs[key] = tuple(p.strip() for p in raw.split(",") if p.strip())
                elif key == "name_fallback_offsets":
                    kwargs[key] = tuple(int(p) for p in raw.split(",") if p.strip())
                elif key == "date_serial_threshold":
                    kwargs[key] = float(raw)
                else:
                    kwargs[key] = int(raw)
            except ValueError as exc:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from exc
        return cls(**kwargs)


def _check_column_letter(letter: Any, field_name: str) -> None:
    if not isinstance(letter, str):
        raise TypeError(f"{field_name} must be a column letter")
    try:
        column_index(letter)
    except ValueError as exc:
        raise ValueError(f"{field_name} must be a column letter, got {letter!r}") from exc


DEFAULT_LAYOUT = ReportLayout()


# ── Persisted state ─────────────────────────────────────────────


@dataclass
class PersistedSheet:
    name: str
    rows: list[list[Any]] = field(default_factory=list)
    origin: tuple[int, int] = (0, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rows": [list(row) for row in self.rows],
            "origin": list(self.origin),
        }


@dataclass
class PersistedState:
    """Snapshot of the last parse, enough to regenerate the text report."""

    file_info: dict[str, Any] = field(default_factory=dict)
    sheets: list[PersistedSheet] = field(default_factory=list)
    selected_sheet: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileInfo": dict(self.file_info),
            "sheets": [sheet.to_dict() for sheet in self.sheets],
            "selectedSheet": self.selected_sheet,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PersistedState:
        raw_sheets = data.get("sheets")
        if not isinstance(raw_sheets, list):
            raise ValueError("Persisted state is missing a 'sheets' list")
        sheets: list[PersistedSheet] = []
        for raw in raw_sheets:
            if not isinstance(raw, Mapping) or not isinstance(raw.get("name"), str):
                raise ValueError("Persisted sheet entries need a string 'name'")
            origin = raw.get("origin") or [0, 0]
            sheets.append(
                PersistedSheet(
                    name=raw["name"],
                    rows=[list(row) for row in raw.get("rows") or []],
                    origin=(
                        _to_non_negative_int(origin[0], "origin"),
                        _to_non_negative_int(origin[1], "origin"),
                    ),
                )
            )
        return cls(
            file_info=dict(data.get("fileInfo") or {}),
            sheets=sheets,
            selected_sheet=str(data.get("selectedSheet") or ""),
            timestamp=str(data.get("timestamp") or ""),
        )
