"""I/O helpers — load input workbooks, write JSON and text artifacts."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.utils.cell import get_column_letter

from store_report import MAX_FILE_BYTES, SUPPORTED_SUFFIXES
from store_report.errors import DecodeError, InputRejectedError
from store_report.models import SheetSource, Workbook

_OOXML_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
_CSV_ENCODINGS = ("utf-8-sig", "utf-8", "gb18030", "latin-1")

# ── Loading ──────────────────────────────────────────────────────


def check_input(path: Path, max_bytes: int = MAX_FILE_BYTES) -> Path:
    """Reject files the loader cannot or should not decode.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    InputRejectedError
        If the extension is unsupported or the file is larger than *max_bytes*.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise InputRejectedError(
            f"Unsupported file type: {suffix!r}. Use {', '.join(SUPPORTED_SUFFIXES)}"
        )
    size = path.stat().st_size
    if size > max_bytes:
        raise InputRejectedError(
            f"File is too large: {size} bytes (limit {max_bytes} bytes)"
        )
    return path


def _load_ooxml(path: Path) -> Workbook:
    try:
        wb = openpyxl.load_workbook(path, data_only=True)
    except Exception as exc:
        raise DecodeError(f"Could not open workbook {path.name}: {exc}") from exc

    try:
        names: list[str] = []
        sheets: dict[str, SheetSource] = {}
        for ws in wb.worksheets:
            cells: dict[str, Any] = {"!ref": ws.dimensions}
            for row in ws.iter_rows():
                for cell in row:
                    if cell.value is not None:
                        cells[cell.coordinate] = cell.value
            names.append(ws.title)
            sheets[ws.title] = SheetSource(cells=cells)
        return Workbook(sheet_names=names, sheets=dict(sheets))
    finally:
        wb.close()


def _load_xls(path: Path) -> Workbook:
    try:
        import xlrd
    except ImportError as exc:
        raise InputRejectedError(
            "Unsupported .xls input unless 'xlrd' is installed. "
            "Either convert to .xlsx or add dependency: pip install xlrd"
        ) from exc

    try:
        book = xlrd.open_workbook(str(path))
    except Exception as exc:
        raise DecodeError(f"Could not open workbook {path.name}: {exc}") from exc

    names: list[str] = []
    sheets: dict[str, SheetSource] = {}
    for sheet in book.sheets():
        cells: dict[str, Any] = {}
        for r in range(sheet.nrows):
            for c in range(sheet.ncols):
                cell = sheet.cell(r, c)
                if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
                    continue
                value: Any = cell.value
                if cell.ctype == xlrd.XL_CELL_DATE:
                    value = xlrd.xldate_as_datetime(cell.value, book.datemode)
                elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                    value = bool(cell.value)
                cells[f"{get_column_letter(c + 1)}{r + 1}"] = value
        names.append(sheet.name)
        sheets[sheet.name] = SheetSource(cells=cells)
    return Workbook(sheet_names=names, sheets=dict(sheets))


def _read_csv_frame(path: Path, encoding: str, sep: str | None) -> pd.DataFrame:
    return pd.read_csv(
        path,
        header=None,
        dtype=str,
        sep=sep,
        engine="python",
        encoding=encoding,
        encoding_errors="strict",
        keep_default_na=False,
    )


def _load_csv(path: Path) -> Workbook:
    empty = Workbook(sheet_names=[path.stem], sheets={path.stem: []})
    if path.stat().st_size == 0:
        return empty

    last_exc: Exception | None = None
    for encoding in _CSV_ENCODINGS:
        try:
            try:
                frame = _read_csv_frame(path, encoding, sep=None)
            except csv.Error:
                # No delimiter to sniff: single-column file.
                frame = _read_csv_frame(path, encoding, sep=",")
        except pd.errors.EmptyDataError:
            return empty
        except (UnicodeDecodeError, pd.errors.ParserError, csv.Error) as exc:
            last_exc = exc
            continue
        return Workbook(sheet_names=[path.stem], sheets={path.stem: frame.values.tolist()})
    raise DecodeError(f"Could not read CSV {path.name} (decode or parse failed)") from last_exc


def load_workbook(path: Path, max_bytes: int = MAX_FILE_BYTES) -> Workbook:
    """Decode *path* into a :class:`Workbook` for the extraction engine."""
    path = check_input(path, max_bytes)
    suffix = path.suffix.lower()
    if suffix in _OOXML_SUFFIXES:
        return _load_ooxml(path)
    if suffix == ".xls":
        return _load_xls(path)
    return _load_csv(path)


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    # File metadata carries datetimes; everything else is plain JSON already.
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot store {type(obj).__name__} in a state file")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path


def read_json(path: Path) -> Any:
    path = Path(path)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def write_text(path: Path, text: str) -> Path:
    """Write *text* atomically, ending with exactly one newline."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text.rstrip("\n") + "\n", encoding="utf-8")
    tmp_path.replace(path)
    return path
